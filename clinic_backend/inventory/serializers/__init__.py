from .stock_batch import StockBatchIntakeSerializer, StockBatchSerializer

__all__ = ["StockBatchIntakeSerializer", "StockBatchSerializer"]

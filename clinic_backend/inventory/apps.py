# inventory/apps.py

"""
INVENTORY APP CONFIG

Batch-level stock ledger for medications and vaccines:
- received lots with their own expiry and remaining quantity
- FIFO (first-expiry-first-out) dispensing
- expiry monitoring and disposal
"""

from django.apps import AppConfig


class InventoryConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "inventory"
    verbose_name = "Clinic Inventory"

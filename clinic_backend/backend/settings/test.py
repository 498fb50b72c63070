# backend/settings/test.py
"""
PATH: backend/settings/test.py

TEST SETTINGS

- SQLite by default (override DATABASE_URL to run the row-locking
  concurrency test against Postgres).
- Deduction retries do not sleep for long.
- Inventory logs stay quiet unless LOG_LEVEL is set.
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import INVENTORY, LOGGING, env

DEBUG = False

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

INVENTORY["DEDUCTION_RETRY_WAIT_MIN"] = 0.01
INVENTORY["DEDUCTION_RETRY_WAIT_MAX"] = 0.05

LOGGING["loggers"]["inventory"]["level"] = env("LOG_LEVEL", default="CRITICAL").upper()

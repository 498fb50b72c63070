# inventory/conf.py

"""
Inventory settings accessor.

Project settings may define an INVENTORY dict; missing keys fall back
to the defaults below.
"""

from __future__ import annotations

from django.conf import settings

DEFAULTS = {
    "EXPIRING_SOON_DAYS": 30,
    "DEDUCTION_MAX_ATTEMPTS": 3,
    "DEDUCTION_RETRY_WAIT_MIN": 0.05,
    "DEDUCTION_RETRY_WAIT_MAX": 1.0,
    # (label, max days until expiry) checked in order; anything beyond is "good"
    "EXPIRY_URGENCY_BANDS": (
        ("critical", 7),
        ("warning", 30),
        ("attention", 90),
    ),
}


def inventory_setting(name: str):
    if name not in DEFAULTS:
        raise KeyError(f"Unknown inventory setting: {name}")
    overrides = getattr(settings, "INVENTORY", None) or {}
    return overrides.get(name, DEFAULTS[name])

"""
results_pipeline/orm/base.py
Declarative base and shared column helpers for all ORM models
"""
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import declarative_base

Base = declarative_base()

QUANTIZER_2DP = Decimal("0.01")


def utcnow() -> datetime:
    """Naive UTC timestamp (all DateTime columns store UTC without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

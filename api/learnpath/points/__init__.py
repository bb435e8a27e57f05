"""Per-user points ledger backed by an atomic counter."""

from .models import POINTS_TABLES_CQL


__all__ = ["POINTS_TABLES_CQL"]

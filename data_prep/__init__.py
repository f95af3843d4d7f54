"""
Data preparation — loading JSON exports and ledger CSVs, snapshot validation.
"""

from .loader import load_snapshot, load_transactions_csv, snapshot_from_dict
from .validators import ValidationResult, validate_snapshot

__all__ = [
    "load_snapshot",
    "load_transactions_csv",
    "snapshot_from_dict",
    "ValidationResult",
    "validate_snapshot",
]

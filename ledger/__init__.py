"""
In-memory product ledger and price history log.
"""

from .history import PriceHistoryLog, new_history_id
from .products import ProductLedger, new_product_id

__all__ = [
    "PriceHistoryLog",
    "ProductLedger",
    "new_history_id",
    "new_product_id"
]

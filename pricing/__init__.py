"""
Price computation, pricing configuration and the local quoting workspace.
"""

from .calculator import (
    CoefficientSet,
    PriceQuote,
    compute_price,
    detect_purity,
    price_record,
    round_half_away
)
from .coefficients import CoefficientStore
from .quote_book import QuoteBook, RecordedPrice
from .silver import SilverCoefficientSet, compute_silver_price, parse_silver_code, price_silver_record

__all__ = [
    "CoefficientSet",
    "PriceQuote",
    "compute_price",
    "detect_purity",
    "price_record",
    "round_half_away",
    "CoefficientStore",
    "QuoteBook",
    "RecordedPrice",
    "SilverCoefficientSet",
    "compute_silver_price",
    "parse_silver_code",
    "price_silver_record"
]

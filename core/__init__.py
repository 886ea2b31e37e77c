"""Cyber Trader Pro - コアロジック"""
from core.exceptions import (
    AnalysisCancelled,
    CyberTraderError,
    DataUnavailableError,
    InvalidInputError,
    MarketDataError,
    PersistenceError,
    ProviderError,
    ProviderRateLimited,
    ProviderUnavailable,
)

__all__ = [
    "AnalysisCancelled",
    "CyberTraderError",
    "DataUnavailableError",
    "InvalidInputError",
    "MarketDataError",
    "PersistenceError",
    "ProviderError",
    "ProviderRateLimited",
    "ProviderUnavailable",
]

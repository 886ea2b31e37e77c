"""Cyber Trader Pro - データモデル"""
from models.analysis import (
    AnalysisResult,
    Confluence,
    IndicatorSnapshot,
    MarketCondition,
    Signal,
    Trend,
    VolumeCategory,
)
from models.expected_move import ExpectedMoveResult
from models.strategy import StrategyProfile, get_profile

__all__ = [
    "AnalysisResult",
    "Confluence",
    "ExpectedMoveResult",
    "IndicatorSnapshot",
    "MarketCondition",
    "Signal",
    "StrategyProfile",
    "Trend",
    "VolumeCategory",
    "get_profile",
]

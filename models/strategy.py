"""戦略プロファイル データモデル"""
from dataclasses import dataclass, field
from typing import Dict, Tuple

from config import STRATEGY_CONFIGS
from core.exceptions import InvalidInputError

SHORT_TERM = "short-term"
LONG_TERM = "long-term"
STRATEGY_TYPES = (SHORT_TERM, LONG_TERM)

# 保存済み予測リストのキー（戦略タイプごと）
PREDICTION_LIST_KEYS = {
    SHORT_TERM: "shortTermPredictions",
    LONG_TERM: "longTermPredictions",
}


@dataclass(frozen=True)
class StrategyProfile:
    """
    戦略ごとの設定値。振る舞いは持たず、SignalEngine と IndicatorSource が参照するだけのデータ。
    """
    strategy_type: str                              # "short-term" / "long-term"
    name: str
    ema_windows: Tuple[int, int]                    # (fast, slow)
    rsi_window: int
    atr_window: int
    timeframes: Tuple[str, ...]
    risk_per_trade: float
    stop_loss_atr_multiplier: Tuple[float, float]   # (min, max)
    take_profit_atr_multiplier: Tuple[float, float]  # (min, max)
    position_size_factor: float
    mtf_weights: Dict[str, float] = field(default_factory=dict)
    ml_confidence_threshold: float = 0.6
    max_drawdown: float = 0.05

    def __post_init__(self):
        if self.strategy_type not in STRATEGY_TYPES:
            raise InvalidInputError(f"unknown strategy type: {self.strategy_type}")
        if not 0 < self.risk_per_trade <= 1:
            raise InvalidInputError(f"risk_per_trade must be in (0, 1]: {self.risk_per_trade}")
        if not 0 < self.ml_confidence_threshold < 1:
            raise InvalidInputError(
                f"ml_confidence_threshold must be in (0, 1): {self.ml_confidence_threshold}"
            )
        for label, (low, high) in (
            ("stop_loss_atr_multiplier", self.stop_loss_atr_multiplier),
            ("take_profit_atr_multiplier", self.take_profit_atr_multiplier),
        ):
            if low <= 0 or low > high:
                raise InvalidInputError(f"{label} must be an increasing positive range: {(low, high)}")
        for tf, weight in self.mtf_weights.items():
            if not 0 <= weight <= 1:
                raise InvalidInputError(f"mtf weight for {tf} must be in [0, 1]: {weight}")
        missing = [tf for tf in self.timeframes if tf not in self.mtf_weights]
        if missing:
            raise InvalidInputError(f"timeframes without mtf weight: {', '.join(missing)}")

    @classmethod
    def from_config(cls, strategy_type: str, data: dict) -> "StrategyProfile":
        return cls(
            strategy_type=strategy_type,
            name=data["name"],
            ema_windows=tuple(data["ema_windows"]),
            rsi_window=int(data["rsi_window"]),
            atr_window=int(data["atr_window"]),
            timeframes=tuple(data["timeframes"]),
            risk_per_trade=float(data["risk_per_trade"]),
            stop_loss_atr_multiplier=tuple(data["stop_loss_atr_multiplier"]),
            take_profit_atr_multiplier=tuple(data["take_profit_atr_multiplier"]),
            position_size_factor=float(data["position_size_factor"]),
            mtf_weights=dict(data["mtf_weights"]),
            ml_confidence_threshold=float(data["ml_confidence_threshold"]),
            max_drawdown=float(data.get("max_drawdown", 0.05)),
        )

    @property
    def list_key(self) -> str:
        return PREDICTION_LIST_KEYS[self.strategy_type]

    def to_dict(self) -> dict:
        return {
            "strategyType": self.strategy_type,
            "name": self.name,
            "emaWindows": list(self.ema_windows),
            "rsiWindow": self.rsi_window,
            "atrWindow": self.atr_window,
            "timeframes": list(self.timeframes),
            "riskPerTrade": self.risk_per_trade,
            "maxDrawdown": self.max_drawdown,
            "stopLossAtrMultiplier": list(self.stop_loss_atr_multiplier),
            "takeProfitAtrMultiplier": list(self.take_profit_atr_multiplier),
            "positionSizeFactor": self.position_size_factor,
            "mtfWeights": dict(self.mtf_weights),
            "mlConfidenceThreshold": self.ml_confidence_threshold,
        }


_PROFILES = {
    strategy_type: StrategyProfile.from_config(strategy_type, data)
    for strategy_type, data in STRATEGY_CONFIGS.items()
}


def get_profile(strategy_type: str) -> StrategyProfile:
    """戦略タイプ（"short-term" / "long-term"）からプロファイルを返す"""
    try:
        return _PROFILES[strategy_type]
    except KeyError:
        raise InvalidInputError(
            f"strategyType must be one of {', '.join(STRATEGY_TYPES)}: {strategy_type!r}"
        ) from None


def all_profiles() -> list:
    return [_PROFILES[t] for t in STRATEGY_TYPES]

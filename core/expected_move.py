"""
Expected Move 計算 - ExpectedMoveCalculator
CEM = Price × (IV / 100) × √(Days / 365)
"""
import math
import numbers

from core.exceptions import InvalidInputError
from models.expected_move import ExpectedMoveResult

DAYS_PER_YEAR = 365
MIN_DAYS = 1
MAX_DAYS = 365
MAX_VOLATILITY_PCT = 100.0


def _require_number(name: str, value) -> float:
    # bool は int のサブクラスなので明示的に除外
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidInputError(f"{name} must be a number: {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise InvalidInputError(f"{name} must be finite: {value!r}")
    return value


class ExpectedMoveCalculator:
    """価格・インプライドボラティリティ・日数から想定変動幅を算出する（純粋関数）"""

    def compute(self, price, implied_volatility_pct, days_to_horizon) -> ExpectedMoveResult:
        """
        想定変動幅（1σ）と上下限を算出する。

        Args:
            price: 現在価格（> 0）
            implied_volatility_pct: 年率IV（%、0 < iv <= 100）
            days_to_horizon: 満期までの日数（整数、1-365）

        Returns:
            ExpectedMoveResult

        Raises:
            InvalidInputError: 入力値が範囲外の場合（丸めや補正はしない）
        """
        price = _require_number("price", price)
        iv = _require_number("impliedVolatilityPct", implied_volatility_pct)
        days = _require_number("days", days_to_horizon)

        if price <= 0:
            raise InvalidInputError(f"price must be > 0: {price}")
        if not 0 < iv <= MAX_VOLATILITY_PCT:
            raise InvalidInputError(f"impliedVolatilityPct must be in (0, 100]: {iv}")
        if not days.is_integer() or not MIN_DAYS <= days <= MAX_DAYS:
            raise InvalidInputError(f"days must be an integer in [1, 365]: {days_to_horizon!r}")
        days = int(days)

        move = price * (iv / 100) * math.sqrt(days / DAYS_PER_YEAR)

        return ExpectedMoveResult(
            price=price,
            implied_volatility_pct=iv,
            days_to_horizon=days,
            expected_move=move,
            lower_bound=price - move,
            upper_bound=price + move,
            two_sigma_lower=price - 2 * move,
            two_sigma_upper=price + 2 * move,
        )


def compute_expected_move(price, implied_volatility_pct, days_to_horizon) -> ExpectedMoveResult:
    return ExpectedMoveCalculator().compute(price, implied_volatility_pct, days_to_horizon)

"""Expected Move データモデル"""
from dataclasses import dataclass

# 確率帯は統計的に算出したものではなく、1σ/2σ の慣例値を固定で表示する
ONE_SIGMA_PROBABILITY = 68
TWO_SIGMA_PROBABILITY = 95
BEYOND_TWO_SIGMA_PROBABILITY = 5


@dataclass(frozen=True)
class ExpectedMoveResult:
    """CEM（Cyber Expected Move）の計算結果"""
    price: float
    implied_volatility_pct: float
    days_to_horizon: int
    expected_move: float
    lower_bound: float
    upper_bound: float
    two_sigma_lower: float
    two_sigma_upper: float
    one_sigma_probability: int = ONE_SIGMA_PROBABILITY
    two_sigma_probability: int = TWO_SIGMA_PROBABILITY
    beyond_probability: int = BEYOND_TWO_SIGMA_PROBABILITY

    @property
    def move_percent(self) -> float:
        return self.expected_move / self.price * 100

    def to_dict(self) -> dict:
        return {
            "price": self.price,
            "impliedVolatilityPct": self.implied_volatility_pct,
            "daysToHorizon": self.days_to_horizon,
            "expectedMove": self.expected_move,
            "movePercent": self.move_percent,
            "lowerBound": self.lower_bound,
            "upperBound": self.upper_bound,
            "twoSigmaLower": self.two_sigma_lower,
            "twoSigmaUpper": self.two_sigma_upper,
            "probabilities": {
                "withinOneSigma": self.one_sigma_probability,
                "withinTwoSigma": self.two_sigma_probability,
                "beyondTwoSigma": self.beyond_probability,
            },
        }

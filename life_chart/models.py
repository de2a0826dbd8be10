"""
Shared value types: major life events, chart candles and birth records.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from .flow_years import FlowYear
from .sexagenary import SexagenaryTerm

POSITIVE = "positive"
NEGATIVE = "negative"
NEUTRAL = "neutral"
SENTIMENTS = (POSITIVE, NEGATIVE, NEUTRAL)


@dataclass(frozen=True)
class MajorEvent:
    year: int
    description: str
    sentiment: str = NEUTRAL

    def __post_init__(self):
        if self.sentiment not in SENTIMENTS:
            raise ValueError(f"Unknown sentiment: {self.sentiment!r}")

    def to_dict(self) -> dict:
        return {"year": self.year, "event": self.description, "sentiment": self.sentiment}


@dataclass(frozen=True)
class ChartDataPoint:
    """One yearly candle (K线). Finalized points satisfy low <= open/close <= high and score == close."""

    age: int
    year: int
    term: SexagenaryTerm
    da_yun: str
    open: float
    close: float
    high: float
    low: float
    score: float
    reason: str

    @classmethod
    def from_flow_year(cls, flow_year: FlowYear, open: float, close: float, high: float,
                       low: float, score: float, reason: str) -> "ChartDataPoint":
        return cls(
            age=flow_year.age,
            year=flow_year.year,
            term=flow_year.term,
            da_yun=flow_year.da_yun,
            open=open, close=close, high=high, low=low, score=score,
            reason=reason,
        )

    @property
    def gan_zhi(self) -> str:
        return self.term.name

    def to_dict(self) -> dict:
        return {
            "age": self.age,
            "year": self.year,
            "gan_zhi": self.gan_zhi,
            "da_yun": self.da_yun,
            "open": self.open,
            "close": self.close,
            "high": self.high,
            "low": self.low,
            "score": self.score,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class BirthRecord:
    birth_year: int
    birth_month: int
    birth_day: int
    birth_hour: int
    birth_minute: int
    gender: str
    major_events: List[MajorEvent] = field(default_factory=list)
    name: Optional[str] = None
    birth_location: Optional[str] = None
    longitude: Optional[float] = None

"""
Hard-constraint rule engine.
Overrides advisory scores so that declared major events show up in the chart
and every candle stays valid (low <= open/close <= high, score == close).
"""
import math
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Union

from .models import NEGATIVE, POSITIVE, ChartDataPoint, MajorEvent

NEUTRAL_SCORE = 50.0
# 坏事收盘上限 / 好事收盘下限
NEGATIVE_CLOSE_CAP = 35.0
POSITIVE_CLOSE_FLOOR = 75.0
# 强制转为阴线/阳线时开盘与收盘的差
FORCED_BODY = 10.0


def reduce_events(events: Iterable[MajorEvent]) -> Dict[int, MajorEvent]:
    """Key events by year; when several share a year the last one listed wins."""
    by_year: Dict[int, MajorEvent] = {}
    for event in events:
        by_year[event.year] = event
    return by_year


def _finite(value) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return NEUTRAL_SCORE
    return value if math.isfinite(value) else NEUTRAL_SCORE


def is_valid_candle(point: ChartDataPoint) -> bool:
    return (
        point.low <= min(point.open, point.close)
        and point.high >= max(point.open, point.close)
        and point.score == point.close
    )


def constrain_point(point: ChartDataPoint, event: Union[MajorEvent, None]) -> ChartDataPoint:
    open_, close = _finite(point.open), _finite(point.close)
    high, low = _finite(point.high), _finite(point.low)
    reason = point.reason or ""

    if event is not None:
        if event.sentiment == NEGATIVE:
            # 强制下跌
            close = min(close, NEGATIVE_CLOSE_CAP)
            low = min(low, close)
            high = max(high, open_)
            if open_ < close:
                open_ = close + FORCED_BODY
        elif event.sentiment == POSITIVE:
            # 强制上涨
            close = max(close, POSITIVE_CLOSE_FLOOR)
            high = max(high, close)
            low = min(low, open_)
            if open_ > close:
                open_ = close - FORCED_BODY
        if event.description and event.description not in reason:
            reason = f"{reason} {event.description}".strip()

    return replace(
        point,
        open=open_,
        close=close,
        high=max(open_, close, high),
        low=min(open_, close, low),
        score=close,
        reason=reason,
    )


def apply_hard_constraints(
    points: Iterable[ChartDataPoint],
    events: Union[Mapping[int, MajorEvent], Iterable[MajorEvent]],
) -> List[ChartDataPoint]:
    """
    Finalize a provisional series against the user's major events.

    :param points: provisional candles (LLM or fallback output)
    :param events: mapping of calendar year to a single event, or an iterable
        of events reduced with ``reduce_events``
    """
    events_by_year = events if isinstance(events, Mapping) else reduce_events(events)
    return [constrain_point(point, events_by_year.get(point.year)) for point in points]

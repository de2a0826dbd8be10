import math
import random

from life_chart import ChartDataPoint, MajorEvent, SexagenaryTerm
from life_chart.constraints import apply_hard_constraints, is_valid_candle, reduce_events


def make_point(year=2010, open=50.0, close=55.0, high=60.0, low=48.0, score=None, reason="流年平稳"):
    return ChartDataPoint(
        age=year - 1989,
        year=year,
        term=SexagenaryTerm(year % 60),
        da_yun="丁丑",
        open=open, close=close, high=high, low=low,
        score=close if score is None else score,
        reason=reason,
    )


def test_market_crash_scenario():
    events = [MajorEvent(year=2010, description="Market crash", sentiment="negative")]
    [point] = apply_hard_constraints([make_point()], events)

    assert point.close <= 35
    assert point.open >= point.close
    assert point.low <= point.close
    assert point.high >= point.open
    assert point.score == point.close
    assert "Market crash" in point.reason
    assert "流年平稳" in point.reason
    assert is_valid_candle(point)


def test_negative_event_turns_bullish_candle_bearish():
    events = {2010: MajorEvent(2010, "失业", "negative")}
    [point] = apply_hard_constraints([make_point(open=20, close=30, high=32, low=18)], events)
    assert point.close == 30
    assert point.open == 40
    assert point.high == 40
    assert point.low == 18


def test_positive_event():
    events = {2010: MajorEvent(2010, "升职加薪", "positive")}
    [point] = apply_hard_constraints([make_point(open=90, close=60, high=95, low=55)], events)

    assert point.close >= 75
    assert point.open <= point.close
    assert point.open == point.close - 10
    assert point.score == point.close
    assert is_valid_candle(point)
    assert point.reason.endswith("升职加薪")


def test_neutral_event_only_appends_reason():
    original = make_point()
    [point] = apply_hard_constraints([original], [MajorEvent(2010, "搬家", "neutral")])
    assert (point.open, point.close, point.high, point.low, point.score) == (50, 55, 60, 48, 55)
    assert point.reason == "流年平稳 搬家"


def test_no_event_passes_through():
    original = make_point()
    [point] = apply_hard_constraints([original], {})
    assert point == original


def test_no_event_still_clamps_inconsistent_upstream():
    [point] = apply_hard_constraints([make_point(open=70, close=40, high=60, low=45, score=12)], {})
    assert (point.open, point.close) == (70, 40)
    assert point.high == 70
    assert point.low == 40
    assert point.score == 40


def test_malformed_numbers_default_to_neutral():
    bad = make_point(open=float("nan"), close=55, high=float("inf"), low=None)
    [point] = apply_hard_constraints([bad], {})
    assert point.open == 50
    assert not any(math.isnan(v) for v in (point.open, point.close, point.high, point.low))
    assert is_valid_candle(point)


def test_merge_is_idempotent():
    rng = random.Random(7)
    points = []
    for year in range(1990, 2090):
        a, b = rng.uniform(0, 100), rng.uniform(0, 100)
        points.append(make_point(year=year, open=a, close=b, high=rng.uniform(0, 100), low=rng.uniform(0, 100)))
    events = [
        MajorEvent(1995, "考上大学", "positive"),
        MajorEvent(2008, "金融危机", "negative"),
        MajorEvent(2020, "疫情", "negative"),
        MajorEvent(2030, "结婚", "positive"),
        MajorEvent(2040, "旅行", "neutral"),
    ]

    once = apply_hard_constraints(points, events)
    twice = apply_hard_constraints(once, events)
    assert once == twice
    assert all(is_valid_candle(p) for p in once)

    by_year = {p.year: p for p in once}
    assert by_year[1995].close >= 75
    assert by_year[2030].close >= 75
    assert by_year[2008].close <= 35
    assert by_year[2020].close <= 35


def test_reduce_events_last_wins():
    events = [
        MajorEvent(2010, "first", "positive"),
        MajorEvent(2011, "other", "neutral"),
        MajorEvent(2010, "second", "negative"),
    ]
    reduced = reduce_events(events)
    assert set(reduced) == {2010, 2011}
    assert reduced[2010].description == "second"

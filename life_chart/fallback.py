"""
Synthetic narrative used when the LLM collaborator is unavailable.
Produces a smooth random walk around the midline score; the result is still
finalized by the hard-constraint engine.
"""
import math
import random
from typing import Dict, Optional, Sequence

from .flow_years import FlowYear
from .narrative import AnalysisSection, NarrativePoint, NarrativeResult

FALLBACK_REASON = "流年运势波动（模拟数据）"

MIDLINE_SCORE = 50
WAVE_AMPLITUDE = 20
WAVE_PERIOD = 5
NOISE = 10
BULLISH_PROBABILITY = 0.55
MAX_BODY = 10
MAX_WICK = 5
MIN_SCORE, MAX_SCORE = 10, 90

FALLBACK_ANALYSIS = AnalysisSection(
    summary="这是一个模拟数据生成的报告（AI 服务暂不可用）。您的八字显示出一种坚韧不拔的特质，如同高山松柏，历经风霜而更显苍翠。",
    summary_score=78,
    personality="性格坚毅，外冷内热，做事有条理。",
    personality_score=80,
    career="事业中期发力，大器晚成。",
    career_score=75,
    wealth="财运随事业起伏，正财为主。",
    wealth_score=70,
    marriage="感情细腻，需要多沟通。",
    marriage_score=72,
    health="注意肠胃保养。",
    health_score=65,
    family="六亲缘分深厚。",
    trading_style="稳健长线持有者 (HODLer)",
)


def _clamp(value: float) -> float:
    return max(MIN_SCORE, min(MAX_SCORE, value))


def generate_fallback_points(flow_years: Sequence[FlowYear], rng: Optional[random.Random] = None) -> Dict[int, NarrativePoint]:
    """
    One synthetic candle per flow year.

    :param rng: random source; pass a seeded ``random.Random`` for reproducible output
    """
    rng = rng or random.Random()
    points = {}
    for flow_year in flow_years:
        base = (
            MIDLINE_SCORE
            + math.sin(flow_year.age / WAVE_PERIOD) * WAVE_AMPLITUDE
            + rng.uniform(-NOISE, NOISE)
        )
        bullish = rng.random() < BULLISH_PROBABILITY
        move = rng.uniform(0, MAX_BODY)

        open_ = _clamp(base)
        close = _clamp(base + move if bullish else base - move)
        high = max(open_, close) + rng.uniform(0, MAX_WICK)
        low = min(open_, close) - rng.uniform(0, MAX_WICK)

        points[flow_year.age] = NarrativePoint(
            age=flow_year.age,
            open=round(open_),
            close=round(close),
            high=round(high),
            low=round(low),
            score=round(close),
            reason=FALLBACK_REASON,
        )
    return points


def generate_fallback_narrative(flow_years: Sequence[FlowYear], rng: Optional[random.Random] = None) -> NarrativeResult:
    return NarrativeResult(
        points=generate_fallback_points(flow_years, rng),
        analysis=FALLBACK_ANALYSIS.model_copy(),
    )

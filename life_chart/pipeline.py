"""
End-to-end life chart computation:
pillars -> great cycles -> flow years -> narrative (LLM or fallback) -> hard constraints.
"""
import random
import time
from dataclasses import dataclass
from typing import List, Optional

from lunar_python import Solar

from .constraints import apply_hard_constraints, reduce_events
from .cycles import GreatCycleSchedule, schedule_great_cycles
from .errors import NarrativeUnavailable
from .fallback import generate_fallback_narrative
from .flow_years import FlowYear, project_flow_years
from .models import BirthRecord
from .narrative import (
    LLMNarrativeProvider,
    NarrativeContext,
    NarrativeProvider,
    check_narrative_result,
    merge_with_flow_years,
)
from .settings import get_api_key, log_perf
from .sexagenary import FourPillars, SexagenaryClock, calculate_true_solar_time, stem_element

SOURCE_LLM = "llm"
SOURCE_FALLBACK = "fallback"


@dataclass(frozen=True)
class ChartStructure:
    """Deterministic part of a life chart."""

    pillars: FourPillars
    schedule: GreatCycleSchedule
    flow_years: List[FlowYear]
    precise: bool
    time_correction: Optional[str] = None

    def start_info(self) -> dict:
        offset = self.schedule.start_offset
        return {
            "forward": self.schedule.forward,
            "start_age": self.schedule.start_age,
            "start_date": self.schedule.start_moment.strftime("%Y-%m-%d %H:%M"),
            "years": offset.years,
            "months": offset.months,
            "days": offset.days,
            "hours": offset.hours,
        }

    def extra_info(self) -> dict:
        pillars = self.pillars
        birth = pillars.birth
        lunar = Solar.fromYmdHms(birth.year, birth.month, birth.day, birth.hour, birth.minute, 0).getLunar()
        return {
            "day_master": pillars.day_master,
            "day_element": stem_element(pillars.day.stem_index),
            "is_forward": self.schedule.forward,
            "na_yin": {
                "year": pillars.year.na_yin,
                "month": pillars.month.na_yin,
                "day": pillars.day.na_yin,
                "hour": pillars.hour.na_yin,
            },
            "wu_xing": pillars.wu_xing(),
            # 十神
            "shi_shen": pillars.stem_ten_gods(),
            "zhi_shi_shen": pillars.branch_ten_gods(),
            # 农历信息
            "lunar_date": f"{lunar.getYearInChinese()}年{lunar.getMonthInChinese()}月{lunar.getDayInChinese()}",
            "sheng_xiao": lunar.getYearShengXiao(),
            # 出生当日的节气，非节气日为空
            "jie_qi": lunar.getJieQi(),
            "calendar": "precise" if self.precise else "approximate",
            "time_correction": self.time_correction,
        }

    def to_dict(self) -> dict:
        return {
            "four_pillars": self.pillars.names(),
            "great_cycles": [
                {
                    "ordinal": cycle.ordinal,
                    "gan_zhi": cycle.term.name,
                    "start_age": cycle.start_age,
                    "end_age": cycle.end_age,
                }
                for cycle in self.schedule.cycles
            ],
            "start_info": self.start_info(),
            "flow_years": [
                {"age": fy.age, "year": fy.year, "gan_zhi": fy.gan_zhi, "da_yun": fy.da_yun}
                for fy in self.flow_years
            ],
            "extra_info": self.extra_info(),
        }


def build_structure(record: BirthRecord, clock: SexagenaryClock = None) -> ChartStructure:
    """
    Compute pillars, great cycles and the 100 flow years for a birth record.
    Raises InvalidBirthMoment for dates/times that do not exist.
    """
    clock = clock or SexagenaryClock()
    moment = clock.birth_moment(
        record.birth_year, record.birth_month, record.birth_day,
        record.birth_hour, record.birth_minute
    )

    time_correction = None
    if record.longitude is not None:
        moment, time_diff = calculate_true_solar_time(
            record.birth_year, record.birth_month, record.birth_day,
            record.birth_hour, record.birth_minute, record.longitude
        )
        moment = moment.replace(second=0, microsecond=0)
        if time_diff >= 0:
            time_correction = f"真太阳时校正: +{time_diff:.1f}分钟"
        else:
            time_correction = f"真太阳时校正: {time_diff:.1f}分钟"

    pillars = clock.pillars_at(moment)
    schedule = schedule_great_cycles(pillars, record.gender, clock, birth_year=record.birth_year)
    flow_years = project_flow_years(
        record.birth_year, pillars.year, schedule.cycles, pillar_year=pillars.pillar_year
    )
    return ChartStructure(
        pillars=pillars,
        schedule=schedule,
        flow_years=flow_years,
        precise=clock.precise,
        time_correction=time_correction,
    )


def compute_life_chart(
    record: BirthRecord,
    provider: NarrativeProvider = None,
    clock: SexagenaryClock = None,
    rng: random.Random = None,
) -> dict:
    """
    Compute the full life chart for a birth record.

    :param provider: narrative collaborator; defaults to the LLM provider when
        an API key is configured, otherwise the synthetic fallback is used
    :param rng: random source for the fallback generator
    :return: dict with four_pillars, great_cycles, start_info, flow_years,
        chart_data, analysis, extra_info, narrative_source, is_premium
    """
    start_time = time.monotonic()
    structure = build_structure(record, clock)
    events_by_year = reduce_events(record.major_events)

    if provider is None and get_api_key():
        provider = LLMNarrativeProvider()

    narrative = None
    if provider is None:
        print("WARNING: No API key found. Returning Mock Data.", flush=True)
    else:
        context = NarrativeContext(
            pillars=structure.pillars,
            schedule=structure.schedule,
            birth_year=record.birth_year,
            gender=record.gender,
            major_events=list(events_by_year.values()),
            name=record.name,
        )
        try:
            narrative = check_narrative_result(provider.generate(context))
        except NarrativeUnavailable as e:
            print(f"WARNING: Narrative unavailable, returning Mock Data: {e}", flush=True)
        except Exception as e:
            print(f"ERROR: Narrative provider failed, returning Mock Data: {e}", flush=True)

    source = SOURCE_LLM if narrative is not None else SOURCE_FALLBACK
    if narrative is None:
        narrative = generate_fallback_narrative(structure.flow_years, rng)

    provisional = merge_with_flow_years(structure.flow_years, narrative.points)
    # 规则引擎优先于 LLM 数值
    chart_data = apply_hard_constraints(provisional, events_by_year)

    log_perf(
        f"[PERF] life_chart source={source} points={len(chart_data)} "
        f"total_ms={int((time.monotonic() - start_time) * 1000)}"
    )

    result = structure.to_dict()
    result.update({
        "chart_data": [point.to_dict() for point in chart_data],
        "analysis": narrative.analysis.model_dump(),
        "narrative_source": source,
        "is_premium": False,
    })
    return result

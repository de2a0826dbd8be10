"""
大运 (Great Cycle) scheduling.
"""
import calendar
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Tuple

from .sexagenary import FourPillars, SexagenaryClock, SexagenaryTerm, is_yang_stem

CYCLE_YEARS = 10
MIN_CYCLES = 8
MAX_CYCLES = 12

# 起运换算：三天为一年 (4320 分钟)，六小时为一月，十二分钟为一天，一分钟为两小时
MINUTES_PER_YEAR = 4320
MINUTES_PER_MONTH = 360
MINUTES_PER_DAY = 12
HOURS_PER_MINUTE = 2

MALE_VALUES = ("male", "男", "m")
FEMALE_VALUES = ("female", "女", "f")


@dataclass(frozen=True)
class StartOffset:
    """Time from birth to the start of the first Great Cycle."""

    years: int
    months: int
    days: int
    hours: int

    def __str__(self) -> str:
        return f"{self.years}年{self.months}个月{self.days}天{self.hours}小时"


@dataclass(frozen=True)
class GreatCycle:
    ordinal: int
    term: SexagenaryTerm
    start_age: int
    end_age: int

    def contains(self, age: int) -> bool:
        return self.start_age <= age < self.end_age


@dataclass(frozen=True)
class GreatCycleSchedule:
    forward: bool
    start_offset: StartOffset
    start_moment: datetime
    start_age: int
    cycles: Tuple[GreatCycle, ...]


def is_male(gender: str) -> bool:
    value = str(gender).strip().lower()
    if value in MALE_VALUES:
        return True
    if value in FEMALE_VALUES:
        return False
    raise ValueError(f"Unknown gender: {gender!r}")


def is_forward(day_stem_index: int, gender: str) -> bool:
    """阳男阴女顺排，阴男阳女逆排。"""
    return is_yang_stem(day_stem_index) == is_male(gender)


def elapsed_to_start_offset(elapsed: timedelta) -> StartOffset:
    """
    Convert the time between birth and the adjacent solar term into the
    offset of the first Great Cycle (3 days = 1 year, 1 day = 4 months,
    2 hours = 10 days).
    """
    minutes = int(abs(elapsed.total_seconds()) // 60)
    years, minutes = divmod(minutes, MINUTES_PER_YEAR)
    months, minutes = divmod(minutes, MINUTES_PER_MONTH)
    days, minutes = divmod(minutes, MINUTES_PER_DAY)
    return StartOffset(years=years, months=months, days=days, hours=minutes * HOURS_PER_MINUTE)


def _add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def apply_start_offset(birth: datetime, offset: StartOffset) -> datetime:
    moment = _add_months(birth, offset.years * 12 + offset.months)
    return moment + timedelta(days=offset.days, hours=offset.hours)


def cycle_count_for(start_age: int, horizon: int = 100) -> int:
    """Smallest number of cycles whose [start, end) spans reach the horizon age."""
    needed = math.ceil((horizon + 1 - start_age) / CYCLE_YEARS)
    return max(MIN_CYCLES, min(MAX_CYCLES, needed))


def schedule_great_cycles(
    pillars: FourPillars,
    gender: str,
    clock: SexagenaryClock,
    horizon: int = 100,
    birth_year: int = None,
) -> GreatCycleSchedule:
    """
    Build the ordered Great Cycle sequence for a subject.

    Direction follows the day stem polarity and gender; the first cycle starts
    after the time to the adjacent sectional term in that direction, and each
    cycle steps one term from the month pillar.

    :param birth_year: civil year counted as age 1; defaults to the year of
        ``pillars.birth``, which differs after a true solar time correction
        across New Year
    """
    forward = is_forward(pillars.day.stem_index, gender)
    birth = pillars.birth
    boundary = clock.nearest_term_boundary(birth, forward=forward)
    offset = elapsed_to_start_offset(boundary - birth)
    start_moment = apply_start_offset(birth, offset)
    # 虚岁：出生当年为 1 岁
    if birth_year is None:
        birth_year = birth.year
    start_age = start_moment.year - birth_year + 1

    step = 1 if forward else -1
    cycles = tuple(
        GreatCycle(
            ordinal=i,
            term=pillars.month.shift(step * i),
            start_age=start_age + (i - 1) * CYCLE_YEARS,
            end_age=start_age + i * CYCLE_YEARS,
        )
        for i in range(1, cycle_count_for(start_age, horizon) + 1)
    )
    return GreatCycleSchedule(
        forward=forward,
        start_offset=offset,
        start_moment=start_moment,
        start_age=start_age,
        cycles=cycles,
    )

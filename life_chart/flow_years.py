"""
流年 (Flow Year) projection over ages 1-100.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .cycles import GreatCycle
from .sexagenary import SexagenaryTerm

HORIZON_YEARS = 100
# 起运之前的年份
CHILDHOOD_LABEL = "童限"


@dataclass(frozen=True)
class FlowYear:
    age: int
    year: int
    term: SexagenaryTerm
    cycle: Optional[GreatCycle]

    @property
    def gan_zhi(self) -> str:
        return self.term.name

    @property
    def da_yun(self) -> str:
        return self.cycle.term.name if self.cycle else CHILDHOOD_LABEL


def flow_year_term(year_pillar: SexagenaryTerm, age: int, pillar_shift: int = 0) -> SexagenaryTerm:
    return year_pillar.shift(age - 1 + pillar_shift)


def active_cycle(age: int, cycles: Sequence[GreatCycle]) -> Optional[GreatCycle]:
    if not cycles or age < cycles[0].start_age:
        return None
    for cycle in cycles:
        if cycle.contains(age):
            return cycle
    return cycles[-1]


def project_flow_years(
    birth_year: int,
    year_pillar: SexagenaryTerm,
    cycles: Sequence[GreatCycle],
    pillar_year: Optional[int] = None,
    horizon: int = HORIZON_YEARS,
) -> List[FlowYear]:
    """
    One FlowYear per age, starting at the birth year (age 1).

    Each calendar year is labeled with the pillar that opens at its 立春. For a
    birth before 立春 the year pillar belongs to the previous year, so pass
    ``pillar_year`` to shift the projection onto the calendar year; without it
    the pillar simply advances one term per age from ``year_pillar``.
    """
    pillar_shift = birth_year - pillar_year if pillar_year is not None else 0
    return [
        FlowYear(
            age=age,
            year=birth_year + age - 1,
            term=flow_year_term(year_pillar, age, pillar_shift),
            cycle=active_cycle(age, cycles),
        )
        for age in range(1, horizon + 1)
    ]

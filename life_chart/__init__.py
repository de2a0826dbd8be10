"""
Life chart (人生K线) engine.
Four Pillars, Great Cycles and 100 flow years, reconciled with LLM narrative scores.
"""
from .constraints import apply_hard_constraints, is_valid_candle, reduce_events
from .cycles import GreatCycle, GreatCycleSchedule, elapsed_to_start_offset, schedule_great_cycles
from .errors import InvalidBirthMoment, NarrativeUnavailable
from .flow_years import CHILDHOOD_LABEL, FlowYear, project_flow_years
from .models import BirthRecord, ChartDataPoint, MajorEvent
from .narrative import LLMNarrativeProvider, NarrativeContext, NarrativeProvider, NarrativeResult
from .pipeline import build_structure, compute_life_chart
from .sexagenary import (
    FixedDateTermLocator,
    FourPillars,
    SexagenaryClock,
    SexagenaryTerm,
    SolarTermLocator,
)

__version__ = "0.1.0"

"""
干支历 (Sexagenary Clock).
Computes the Four Pillars (四柱) of a birth moment and locates the sectional
solar terms (节) that pivot the year and month pillars.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional

from lunar_python import Solar

from .errors import InvalidBirthMoment
from .settings import CALENDAR_APPROXIMATE, get_calendar_mode

# 天干
STEMS = ("甲", "乙", "丙", "丁", "戊", "己", "庚", "辛", "壬", "癸")
# 地支
BRANCHES = ("子", "丑", "寅", "卯", "辰", "巳", "午", "未", "申", "酉", "戌", "亥")
# 六十甲子
JIAZI = tuple(STEMS[i % 10] + BRANCHES[i % 12] for i in range(60))

# 1949-10-01 为甲子日
DAY_CYCLE_EPOCH = date(1949, 10, 1)
# 1984 为甲子年
YEAR_CYCLE_EPOCH = 1984

# 北京时间基准经度 (东八区中央经线为120°E)
BEIJING_LONGITUDE = 120.0

# 六十甲子纳音，每两柱共一纳音
NAYIN = (
    "海中金", "炉中火", "大林木", "路旁土", "剑锋金", "山头火",
    "涧下水", "城头土", "白蜡金", "杨柳木", "泉中水", "屋上土",
    "霹雳火", "松柏木", "长流水", "砂中金", "山下火", "平地木",
    "壁上土", "金箔金", "覆灯火", "天河水", "大驿土", "钗钏金",
    "桑柘木", "大溪水", "沙中土", "天上火", "石榴木", "大海水",
)

ELEMENTS = ("木", "火", "土", "金", "水")
STEM_ELEMENTS = ("木", "木", "火", "火", "土", "土", "金", "金", "水", "水")
BRANCH_ELEMENTS = ("水", "土", "木", "木", "土", "火", "火", "土", "金", "金", "土", "水")

# 各月"节"的近似公历日期 (小寒≈1/6, 立春≈2/4, 惊蛰≈3/6 ...)
APPROX_TERM_DAYS = (6, 4, 6, 5, 6, 6, 7, 8, 8, 8, 7, 7)


@dataclass(frozen=True)
class SexagenaryTerm:
    """One of the 60 stem-branch pairs, stored as its index in the cycle."""

    index: int

    def __post_init__(self):
        if not 0 <= self.index < 60:
            raise ValueError(f"sexagenary index out of range: {self.index}")

    @property
    def stem_index(self) -> int:
        return self.index % 10

    @property
    def branch_index(self) -> int:
        return self.index % 12

    @property
    def stem(self) -> str:
        return STEMS[self.stem_index]

    @property
    def branch(self) -> str:
        return BRANCHES[self.branch_index]

    @property
    def name(self) -> str:
        return JIAZI[self.index]

    @property
    def na_yin(self) -> str:
        return NAYIN[self.index // 2]

    def shift(self, steps: int) -> "SexagenaryTerm":
        return SexagenaryTerm((self.index + steps) % 60)

    @classmethod
    def from_name(cls, name: str) -> "SexagenaryTerm":
        try:
            return cls(JIAZI.index(name))
        except ValueError:
            raise ValueError(f"not a sexagenary term: {name!r}") from None

    def __str__(self) -> str:
        return self.name


def term_from_parts(stem_index: int, branch_index: int) -> SexagenaryTerm:
    """
    Combine a stem and a branch into their term.
    Only pairs of equal parity (阳干配阳支, 阴干配阴支) exist in the cycle.
    """
    if (stem_index - branch_index) % 2:
        raise ValueError(f"{STEMS[stem_index % 10]}{BRANCHES[branch_index % 12]} is not in the sexagenary cycle")
    return SexagenaryTerm((6 * stem_index - 5 * branch_index) % 60)


def year_term(pillar_year: int) -> SexagenaryTerm:
    return SexagenaryTerm((pillar_year - YEAR_CYCLE_EPOCH) % 60)


def month_term(year_stem_index: int, branch_index: int) -> SexagenaryTerm:
    """五虎遁：甲己之年丙作首，寅月天干由年干决定。"""
    first_stem = (year_stem_index % 5 * 2 + 2) % 10
    stem = (first_stem + (branch_index - 2) % 12) % 10
    return term_from_parts(stem, branch_index)


def day_term(day: date) -> SexagenaryTerm:
    return SexagenaryTerm((day - DAY_CYCLE_EPOCH).days % 60)


def hour_branch_index(hour: int) -> int:
    """Two-hour buckets starting at 23:00 (子时 = 23:00-00:59)."""
    return ((hour + 1) // 2) % 12


def hour_term(day_stem_index: int, hour: int) -> SexagenaryTerm:
    """五鼠遁：甲己还加甲，时干由日干决定。"""
    branch = hour_branch_index(hour)
    stem = (day_stem_index % 5 * 2 + branch) % 10
    return term_from_parts(stem, branch)


def is_yang_stem(stem_index: int) -> bool:
    """甲丙戊庚壬为阳干，乙丁己辛癸为阴干。"""
    return stem_index % 2 == 0


def stem_element(stem_index: int) -> str:
    return STEM_ELEMENTS[stem_index % 10]


def branch_element(branch_index: int) -> str:
    return BRANCH_ELEMENTS[branch_index % 12]


def element_relation(element_a: str, element_b: str) -> str:
    """
    五行生克关系 (from the perspective of element_a).

    Returns one of: 生, 克, 被生, 被克, 同
    """
    if element_a not in ELEMENTS or element_b not in ELEMENTS or element_a == element_b:
        return "同"
    a = ELEMENTS.index(element_a)
    b = ELEMENTS.index(element_b)
    # 相生：木生火、火生土、土生金、金生水、水生木
    if (a + 1) % 5 == b:
        return "生"
    if (b + 1) % 5 == a:
        return "被生"
    # 相克：木克土、土克水、水克火、火克金、金克木
    if (a + 2) % 5 == b:
        return "克"
    return "被克"


# 地支藏干 [本气, 中气, 余气]
HIDDEN_STEMS = {
    "子": ("癸",),
    "丑": ("己", "癸", "辛"),
    "寅": ("甲", "丙", "戊"),
    "卯": ("乙",),
    "辰": ("戊", "乙", "癸"),
    "巳": ("丙", "庚", "戊"),
    "午": ("丁", "己"),
    "未": ("己", "丁", "乙"),
    "申": ("庚", "壬", "戊"),
    "酉": ("辛",),
    "戌": ("戊", "辛", "丁"),
    "亥": ("壬", "甲"),
}

# 十神：(五行关系, 是否同阴阳) -> 名称
TEN_GODS = {
    ("同", True): "比肩",
    ("同", False): "劫财",
    ("生", True): "食神",
    ("生", False): "伤官",
    ("克", True): "偏财",
    ("克", False): "正财",
    ("被克", True): "七杀",
    ("被克", False): "正官",
    ("被生", True): "偏印",
    ("被生", False): "正印",
}


def hidden_stems(branch_index: int) -> tuple:
    return tuple(STEMS.index(stem) for stem in HIDDEN_STEMS[BRANCHES[branch_index % 12]])


def ten_god(day_stem_index: int, stem_index: int) -> str:
    """
    十神：以日主为我，看目标天干与日主的五行生克和阴阳异同。
    """
    relation = element_relation(stem_element(day_stem_index), stem_element(stem_index))
    same_polarity = is_yang_stem(day_stem_index) == is_yang_stem(stem_index)
    return TEN_GODS[(relation, same_polarity)]


def calculate_true_solar_time(year: int, month: int, day: int, hour: int, minute: int, longitude: float) -> tuple:
    """
    Calculate true solar time based on birthplace longitude.
    """
    longitude_diff = longitude - BEIJING_LONGITUDE
    time_diff_minutes = longitude_diff * 4
    try:
        original_dt = datetime(year, month, day, hour, minute)
    except (TypeError, ValueError) as e:
        raise InvalidBirthMoment(f"Invalid birth moment {year}-{month}-{day} {hour}:{minute}: {e}") from e
    adjusted_dt = original_dt + timedelta(minutes=time_diff_minutes)
    return adjusted_dt, time_diff_minutes


def _solar_to_datetime(solar) -> datetime:
    return datetime(
        solar.getYear(), solar.getMonth(), solar.getDay(),
        solar.getHour(), solar.getMinute(), solar.getSecond()
    )


def _lunar_at(moment: datetime):
    return Solar.fromYmdHms(
        moment.year, moment.month, moment.day, moment.hour, moment.minute, moment.second
    ).getLunar()


class SolarTermLocator:
    """
    精确节气定位。
    Sectional term (节) crossings come from lunar-python's solar longitude
    tables, in Beijing time.
    """

    precise = True

    def previous_term(self, moment: datetime) -> datetime:
        return _solar_to_datetime(_lunar_at(moment).getPrevJie().getSolar())

    def next_term(self, moment: datetime) -> datetime:
        return _solar_to_datetime(_lunar_at(moment).getNextJie().getSolar())


class FixedDateTermLocator:
    """
    近似节气定位 (APPROXIMATE, offline/test use only).
    Treats each sectional term as midnight on a fixed civil date. Results can
    be off by one month or year for births within a few days of a term.
    """

    precise = False

    @staticmethod
    def _term_in_month(year: int, month: int) -> datetime:
        return datetime(year, month, APPROX_TERM_DAYS[month - 1])

    def previous_term(self, moment: datetime) -> datetime:
        candidate = self._term_in_month(moment.year, moment.month)
        if candidate <= moment:
            return candidate
        if moment.month == 1:
            return self._term_in_month(moment.year - 1, 12)
        return self._term_in_month(moment.year, moment.month - 1)

    def next_term(self, moment: datetime) -> datetime:
        candidate = self._term_in_month(moment.year, moment.month)
        if candidate > moment:
            return candidate
        if moment.month == 12:
            return self._term_in_month(moment.year + 1, 1)
        return self._term_in_month(moment.year, moment.month + 1)


def default_term_locator():
    if get_calendar_mode() == CALENDAR_APPROXIMATE:
        print("WARNING: using approximate fixed-date solar terms (LIFE_CHART_CALENDAR=approximate)", flush=True)
        return FixedDateTermLocator()
    return SolarTermLocator()


@dataclass(frozen=True)
class FourPillars:
    """四柱：年柱、月柱、日柱、时柱。"""

    year: SexagenaryTerm
    month: SexagenaryTerm
    day: SexagenaryTerm
    hour: SexagenaryTerm
    # 年柱所属年份 (立春前出生则为上一年)
    pillar_year: int
    birth: datetime

    @property
    def day_master(self) -> str:
        return self.day.stem

    @property
    def terms(self) -> tuple:
        return (self.year, self.month, self.day, self.hour)

    def names(self) -> List[str]:
        return [term.name for term in self.terms]

    def stem_ten_gods(self) -> dict:
        """天干十神 (日柱为日主本身，不计)。"""
        day_stem = self.day.stem_index
        return {
            "year": ten_god(day_stem, self.year.stem_index),
            "month": ten_god(day_stem, self.month.stem_index),
            "hour": ten_god(day_stem, self.hour.stem_index),
        }

    def branch_ten_gods(self) -> dict:
        """地支藏干十神，按本气、中气、余气排列。"""
        day_stem = self.day.stem_index
        return {
            key: [ten_god(day_stem, stem) for stem in hidden_stems(term.branch_index)]
            for key, term in zip(("year", "month", "day", "hour"), self.terms)
        }

    def wu_xing(self) -> dict:
        return {
            key: stem_element(term.stem_index) + branch_element(term.branch_index)
            for key, term in zip(("year", "month", "day", "hour"), self.terms)
        }

    def __str__(self) -> str:
        return f"年柱: {self.year}  月柱: {self.month}  日柱: {self.day}  时柱: {self.hour}"


class SexagenaryClock:
    """
    Converts a birth moment into Four Pillars.

    :param locator: solar term locator; SolarTermLocator unless
        LIFE_CHART_CALENDAR=approximate selects FixedDateTermLocator
    :param late_zi_rolls_day: when True a birth at 23:00-23:59 takes the next
        day's pillar (早晚子时不分); by default the day pillar follows the civil date
    """

    def __init__(self, locator=None, late_zi_rolls_day: bool = False):
        self.locator = locator or default_term_locator()
        self.late_zi_rolls_day = late_zi_rolls_day

    @property
    def precise(self) -> bool:
        return getattr(self.locator, "precise", False)

    @staticmethod
    def birth_moment(year: int, month: int, day: int, hour: int, minute: int = 0) -> datetime:
        try:
            return datetime(year, month, day, hour, minute)
        except (TypeError, ValueError) as e:
            raise InvalidBirthMoment(f"Invalid birth moment {year}-{month}-{day} {hour}:{minute}: {e}") from e

    def four_pillars(self, year: int, month: int, day: int, hour: int, minute: int = 0) -> FourPillars:
        return self.pillars_at(self.birth_moment(year, month, day, hour, minute))

    def pillars_at(self, moment: datetime) -> FourPillars:
        term_start = self.locator.previous_term(moment)
        # 小寒 (一月) 之后、立春之前仍属上一年
        pillar_year = term_start.year - 1 if term_start.month == 1 else term_start.year
        year = year_term(pillar_year)
        month = month_term(year.stem_index, term_start.month % 12)

        civil_day = moment.date()
        next_day = civil_day + timedelta(days=1)
        day = day_term(next_day if self.late_zi_rolls_day and moment.hour == 23 else civil_day)
        # 23点起为次日子时，时干按次日日干起
        hour_base = day_term(next_day) if moment.hour == 23 else day_term(civil_day)
        hour = hour_term(hour_base.stem_index, moment.hour)

        return FourPillars(
            year=year, month=month, day=day, hour=hour,
            pillar_year=pillar_year, birth=moment
        )

    def nearest_term_boundary(self, moment: datetime, forward: Optional[bool] = None) -> datetime:
        """
        Locate the sectional term boundary around a moment.

        :param forward: True for the next term, False for the latest term at or
            before the moment, None for whichever is closer
        """
        if forward is True:
            return self.locator.next_term(moment)
        if forward is False:
            return self.locator.previous_term(moment)
        previous = self.locator.previous_term(moment)
        upcoming = self.locator.next_term(moment)
        return previous if moment - previous <= upcoming - moment else upcoming

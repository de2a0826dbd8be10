from datetime import date, datetime

import pytest
from lunar_python import Solar

from life_chart import InvalidBirthMoment, SexagenaryClock, SexagenaryTerm
from life_chart.sexagenary import (
    JIAZI,
    STEMS,
    FixedDateTermLocator,
    branch_element,
    calculate_true_solar_time,
    day_term,
    element_relation,
    hidden_stems,
    hour_branch_index,
    month_term,
    ten_god,
    term_from_parts,
    year_term,
)


def test_jiazi_table():
    assert len(JIAZI) == 60
    assert JIAZI[0] == "甲子"
    assert JIAZI[59] == "癸亥"
    assert len(set(JIAZI)) == 60


def test_term_indices_are_self_consistent():
    for index in range(60):
        term = SexagenaryTerm(index)
        assert 0 <= term.stem_index <= 9
        assert 0 <= term.branch_index <= 11
        assert term_from_parts(term.stem_index, term.branch_index) == term
        assert SexagenaryTerm.from_name(term.name) == term


def test_term_rejects_impossible_pairs():
    # 甲丑 does not exist
    with pytest.raises(ValueError):
        term_from_parts(0, 1)
    with pytest.raises(ValueError):
        SexagenaryTerm(60)
    with pytest.raises(ValueError):
        SexagenaryTerm.from_name("甲丑")


def test_shift_wraps_around_cycle():
    assert SexagenaryTerm(59).shift(1).name == "甲子"
    assert SexagenaryTerm(0).shift(-1).name == "癸亥"


def test_day_term_reference_dates():
    assert day_term(date(1949, 10, 1)).name == "甲子"
    assert day_term(date(2000, 1, 7)).name == "甲子"
    assert day_term(date(1990, 1, 1)).name == "丙寅"


def test_year_and_month_rules():
    assert year_term(1984).name == "甲子"
    assert year_term(2024).name == "甲辰"
    # 甲己之年丙作首
    assert month_term(0, 2).name == "丙寅"
    assert month_term(5, 0).name == "丙子"
    # 乙庚之岁戊为头
    assert month_term(1, 2).name == "戊寅"


def test_hour_buckets_start_at_23():
    assert hour_branch_index(23) == 0
    assert hour_branch_index(0) == 0
    assert hour_branch_index(1) == 1
    assert hour_branch_index(12) == 6
    assert hour_branch_index(22) == 11


def test_four_pillars_scenario(clock):
    pillars = clock.four_pillars(1990, 1, 1, 12, 0)
    assert pillars.names() == ["己巳", "丙子", "丙寅", "甲午"]
    assert pillars.pillar_year == 1989
    assert pillars.day_master == "丙"


@pytest.mark.parametrize("moment", [
    (1990, 1, 1, 12, 0),
    (1985, 7, 15, 10, 30),
    (2000, 2, 3, 12, 0),
    (1976, 9, 20, 6, 45),
    (2012, 12, 21, 15, 10),
    (1999, 5, 5, 0, 20),
])
def test_pillars_match_lunar_python(clock, moment):
    year, month, day, hour, minute = moment
    eight_char = Solar.fromYmdHms(year, month, day, hour, minute, 0).getLunar().getEightChar()
    expected = [eight_char.getYear(), eight_char.getMonth(), eight_char.getDay(), eight_char.getTime()]
    assert clock.four_pillars(year, month, day, hour, minute).names() == expected


def test_pillars_are_deterministic(clock):
    first = clock.four_pillars(1985, 7, 15, 10, 30)
    second = clock.four_pillars(1985, 7, 15, 10, 30)
    assert first == second


@pytest.mark.parametrize("moment", [
    (1990, 2, 30, 12, 0),
    (1991, 2, 29, 12, 0),
    (1990, 4, 31, 8, 0),
    (1990, 1, 1, 24, 0),
    (1990, 13, 1, 0, 0),
])
def test_invalid_birth_moment(clock, moment):
    with pytest.raises(InvalidBirthMoment):
        clock.four_pillars(*moment)


def test_late_zi_hour(clock):
    evening = clock.four_pillars(1990, 1, 1, 22, 0)
    late = clock.four_pillars(1990, 1, 1, 23, 30)
    next_day = clock.four_pillars(1990, 1, 2, 0, 30)

    # the day pillar follows the civil date by default
    assert late.day == evening.day
    # 23:30 is already the next day's 子 hour
    assert late.hour.branch == "子"
    assert late.hour == next_day.hour

    rolling = SexagenaryClock(clock.locator, late_zi_rolls_day=True)
    assert rolling.four_pillars(1990, 1, 1, 23, 30).day == next_day.day


def test_nearest_term_boundary(clock):
    moment = datetime(1990, 1, 1, 12, 0)
    upcoming = clock.nearest_term_boundary(moment, forward=True)
    previous = clock.nearest_term_boundary(moment, forward=False)

    assert previous <= moment < upcoming
    assert (upcoming.year, upcoming.month) == (1990, 1)
    assert (previous.year, previous.month) == (1989, 12)
    # 小寒 (Jan 5) is closer than 大雪 (Dec 7)
    assert clock.nearest_term_boundary(moment) == upcoming


def test_fixed_date_locator():
    locator = FixedDateTermLocator()
    assert locator.previous_term(datetime(1990, 1, 1, 12)) == datetime(1989, 12, 7)
    assert locator.next_term(datetime(1990, 1, 1, 12)) == datetime(1990, 1, 6)
    assert locator.previous_term(datetime(1990, 2, 4)) == datetime(1990, 2, 4)
    assert locator.next_term(datetime(1990, 12, 20)) == datetime(1991, 1, 6)
    assert locator.precise is False


def test_approximate_clock_agrees_away_from_terms(clock, approx_clock):
    assert approx_clock.four_pillars(1990, 1, 1, 12).names() == clock.four_pillars(1990, 1, 1, 12).names()
    assert approx_clock.precise is False
    assert clock.precise is True


def test_approximate_clock_differs_near_spring_boundary(clock, approx_clock):
    # 2000 年立春在 2 月 4 日晚间
    assert clock.four_pillars(2000, 2, 4, 12).year.name == "己卯"
    assert approx_clock.four_pillars(2000, 2, 4, 12).year.name == "庚辰"


def test_element_relation():
    assert element_relation("木", "火") == "生"
    assert element_relation("火", "木") == "被生"
    assert element_relation("木", "土") == "克"
    assert element_relation("土", "木") == "被克"
    assert element_relation("金", "金") == "同"


def test_na_yin():
    assert SexagenaryTerm.from_name("甲子").na_yin == "海中金"
    assert SexagenaryTerm.from_name("乙丑").na_yin == "海中金"
    assert SexagenaryTerm.from_name("癸亥").na_yin == "大海水"


def test_true_solar_time():
    adjusted, diff = calculate_true_solar_time(1990, 1, 1, 12, 0, 116.0)
    assert diff == pytest.approx(-16.0)
    assert adjusted == datetime(1990, 1, 1, 11, 44)
    with pytest.raises(InvalidBirthMoment):
        calculate_true_solar_time(1990, 2, 30, 12, 0, 116.0)


def test_ten_god_follows_element_and_polarity():
    # 日主乙木见甲木为劫财，见壬水为正印
    assert ten_god(1, 0) == "劫财"
    assert ten_god(1, 8) == "正印"
    assert ten_god(0, 6) == "七杀"
    assert ten_god(0, 7) == "正官"
    assert ten_god(2, 7) == "正财"


@pytest.mark.parametrize("moment", [
    (1990, 1, 1, 12, 0),
    (1985, 7, 15, 10, 30),
    (1976, 9, 20, 6, 45),
    (2012, 12, 21, 15, 10),
])
def test_ten_gods_and_elements_match_lunar_python(clock, moment):
    year, month, day, hour, minute = moment
    eight_char = Solar.fromYmdHms(year, month, day, hour, minute, 0).getLunar().getEightChar()
    pillars = clock.four_pillars(year, month, day, hour, minute)

    assert pillars.stem_ten_gods() == {
        "year": eight_char.getYearShiShenGan(),
        "month": eight_char.getMonthShiShenGan(),
        "hour": eight_char.getTimeShiShenGan(),
    }
    branch_gods = pillars.branch_ten_gods()
    assert sorted(branch_gods["year"]) == sorted(eight_char.getYearShiShenZhi())
    assert sorted(branch_gods["month"]) == sorted(eight_char.getMonthShiShenZhi())
    assert sorted(branch_gods["day"]) == sorted(eight_char.getDayShiShenZhi())
    assert sorted(branch_gods["hour"]) == sorted(eight_char.getTimeShiShenZhi())
    assert pillars.wu_xing() == {
        "year": eight_char.getYearWuXing(),
        "month": eight_char.getMonthWuXing(),
        "day": eight_char.getDayWuXing(),
        "hour": eight_char.getTimeWuXing(),
    }


def test_branch_element_and_hidden_stems():
    assert branch_element(0) == "水"
    assert branch_element(2) == "木"
    assert [STEMS[i] for i in hidden_stems(1)] == ["己", "癸", "辛"]

import pytest

from life_chart import FixedDateTermLocator, SexagenaryClock, SolarTermLocator


@pytest.fixture
def clock():
    return SexagenaryClock(SolarTermLocator())


@pytest.fixture
def approx_clock():
    return SexagenaryClock(FixedDateTermLocator())


@pytest.fixture
def no_api_key(monkeypatch):
    monkeypatch.setattr("life_chart.pipeline.get_api_key", lambda: None)

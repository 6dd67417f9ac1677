import json

import pytest

import config
from core.energy_history import EnergyHistory, classify_trend, slope
from db.storage import StorageError


@pytest.mark.parametrize("scores,expected", [
    ([], "stable"),
    ([50], "stable"),
    ([50, 52], "stable"),
    ([50, 50, 60, 60], "improving"),
    ([60, 60, 50, 50], "declining"),
    ([50, 60, 62], "improving"),
    ([50, 50, 55, 55], "stable"),
])
def test_classify_trend(scores, expected):
    assert classify_trend(scores) == expected


def test_classify_trend_threshold():
    assert classify_trend([50, 52], threshold=1.0) == "improving"


def test_slope():
    assert slope([1]) is None
    assert slope([5, 8]) == 3.0
    assert slope([1, 2, 3, 4]) == pytest.approx(1.0)


def test_record_upserts_per_day(store, clock):
    history = EnergyHistory(store, clock=clock)
    history.record(60, 50, "moderate")
    history.record(75, 55, "strong")
    entries = history.entries()
    assert len(entries) == 1
    assert entries[0].date == "2024-01-15"
    assert entries[0].user_energy == 75.0


def test_record_keeps_sorted_and_prunes(store, clock):
    history = EnergyHistory(store, clock=clock)
    history.record(70, 50, "strong", day="2024-01-14")
    history.record(60, 50, "moderate", day="2024-01-10")
    history.record(10, 10, "challenging", day="2023-10-01")
    assert [e.date for e in history.entries()] == ["2024-01-10", "2024-01-14"]

    raw = json.loads(store.get(config.ENERGY_HISTORY_KEY))
    assert raw[0] == {"date": "2024-01-10", "userEnergyScore": 60.0,
                      "environmentalEnergyScore": 50.0, "alignment": "moderate"}


def test_record_rejects_unknown_alignment(store, clock):
    with pytest.raises(ValueError):
        EnergyHistory(store, clock=clock).record(50, 50, "cosmic")


def test_trend_summary(store, clock):
    history = EnergyHistory(store, clock=clock)
    for day, score, alignment in [
        ("2024-01-12", 50, "challenging"),
        ("2024-01-13", 50, "moderate"),
        ("2024-01-14", 70, "strong"),
        ("2024-01-15", 70, "strong"),
    ]:
        history.record(score, 40, alignment, day=day)

    t = history.trend(30)
    assert t.trend == "improving"
    assert t.average_user_energy == pytest.approx(60.0)
    assert t.average_environmental_energy == pytest.approx(40.0)
    assert (t.strong_days, t.moderate_days, t.challenging_days) == (2, 1, 1)
    assert t.days_recorded == 4
    assert t.slope > 0


def test_trend_window_excludes_old_days(store, clock):
    history = EnergyHistory(store, clock=clock)
    history.record(90, 40, "strong", day="2023-12-01")
    history.record(50, 40, "moderate", day="2024-01-15")
    t = history.trend(7)
    assert t.days_recorded == 1
    assert t.trend == "stable"


def test_empty_trend(store, clock):
    t = EnergyHistory(store, clock=clock).trend()
    assert t.trend == "stable"
    assert t.days_recorded == 0
    assert t.slope is None


def test_iso_timestamp_dates_and_bad_entries_are_tolerated(store, clock):
    store.set(config.ENERGY_HISTORY_KEY, json.dumps([
        {"date": "2024-01-14T00:00:00.000Z", "userEnergyScore": 61,
         "environmentalEnergyScore": 40, "alignment": "strong"},
        {"userEnergyScore": 10},
    ]))
    history = EnergyHistory(store, clock=clock)
    entries = history.entries()
    assert [e.date for e in entries] == ["2024-01-14"]


def test_non_list_history_degrades(store, clock):
    store.set(config.ENERGY_HISTORY_KEY, json.dumps({"oops": True}))
    history = EnergyHistory(store, clock=clock)
    assert history.entries() == []
    assert history.last_read.degraded


def test_record_after_failed_read_keeps_history(flaky_store, clock):
    history = EnergyHistory(flaky_store, clock=clock)
    history.record(70, 60, "strong", day="2024-01-14")

    flaky_store.fail_reads = 1
    with pytest.raises(StorageError):
        history.record(40, 50, "challenging")
    assert [e["date"] for e in json.loads(flaky_store.get(config.ENERGY_HISTORY_KEY))] == ["2024-01-14"]

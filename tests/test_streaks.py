import json

import pytest

import config
from core.streak_recovery import StreakRecovery
from core.streaks import (
    StreakRecord,
    StreakTracker,
    is_milestone,
    next_milestone,
    streak_badge,
    streak_message,
)
from db.storage import StorageError


@pytest.fixture
def tracker(store, clock):
    return StreakTracker(store, clock=clock)


@pytest.fixture
def recovery(store, clock):
    return StreakRecovery(store, clock=clock)


def test_first_log_starts_streak(tracker):
    rec = tracker.log_activity("meditation", "2024-01-15")
    assert rec == StreakRecord(current_streak=1, longest_streak=1, last_log_date="2024-01-15", total_logs=1)


def test_consecutive_days_extend_streak(tracker):
    for day in ("2024-01-13", "2024-01-14", "2024-01-15"):
        rec = tracker.log_activity("sleep", day)
    assert rec.current_streak == 3
    assert rec.longest_streak == 3
    assert rec.total_logs == 3


def test_same_day_relog_is_a_no_op(tracker, store):
    tracker.log_activity("journal", "2024-01-15")
    before = store.get(config.STREAKS_KEY)
    rec = tracker.log_activity("journal", "2024-01-15")
    assert rec.total_logs == 1
    assert store.get(config.STREAKS_KEY) == before


def test_gap_resets_streak_but_keeps_longest(tracker):
    tracker.log_activity("workout", "2024-01-10")
    tracker.log_activity("workout", "2024-01-11")
    rec = tracker.log_activity("workout", "2024-01-13")
    assert rec.current_streak == 1
    assert rec.longest_streak == 2
    assert rec.total_logs == 3


def test_longest_never_below_current(tracker):
    days = ["2024-01-01", "2024-01-02", "2024-01-04", "2024-01-05", "2024-01-06",
            "2024-01-06", "2024-01-09", "2024-01-10"]
    for day in days:
        rec = tracker.log_activity("tasks", day)
        assert rec.longest_streak >= rec.current_streak
    assert rec.longest_streak == 3


def test_earlier_day_does_not_move_last_log_back(tracker):
    tracker.log_activity("sleep", "2024-01-15")
    rec = tracker.log_activity("sleep", "2024-01-14")
    assert rec.last_log_date == "2024-01-15"
    assert rec.total_logs == 1


def test_defaults_to_clock_day(tracker, clock):
    rec = tracker.log_activity("nutrition")
    assert rec.last_log_date == "2024-01-15"
    clock.advance(1)
    assert tracker.log_activity("nutrition").current_streak == 2


def test_unknown_category_rejected(tracker):
    with pytest.raises(ValueError):
        tracker.log_activity("gaming", "2024-01-15")


def test_categories_are_independent(tracker):
    tracker.log_activity("sleep", "2024-01-14")
    tracker.log_activity("sleep", "2024-01-15")
    tracker.log_activity("journal", "2024-01-15")
    streaks = tracker.get_all_streaks()
    assert set(streaks) == {"sleep", "journal"}
    assert streaks["sleep"].current_streak == 2
    assert streaks["journal"].current_streak == 1


def test_get_streak_defaults_for_unlogged_category(tracker, store):
    assert tracker.get_streak("meditation") == StreakRecord()
    assert tracker.get_all_streaks() == {}
    assert store.get(config.STREAKS_KEY) is None


def test_persisted_format(tracker, store):
    tracker.log_activity("sleep", "2024-01-15")
    data = json.loads(store.get(config.STREAKS_KEY))
    assert data == {"sleep": {"currentStreak": 1, "longestStreak": 1,
                              "lastLogDate": "2024-01-15", "totalLogs": 1}}


def test_malformed_json_degrades_to_defaults(store, clock):
    store.set(config.STREAKS_KEY, "{not json")
    tracker = StreakTracker(store, clock=clock)
    assert tracker.get_all_streaks() == {}
    assert tracker.last_read.degraded
    rec = tracker.log_activity("sleep", "2024-01-15")
    assert rec.current_streak == 1


def test_write_failure_propagates(failing_store, clock):
    tracker = StreakTracker(failing_store, clock=clock)
    with pytest.raises(StorageError):
        tracker.log_activity("sleep", "2024-01-15")


def test_failed_read_does_not_wipe_other_categories(flaky_store, clock):
    tracker = StreakTracker(flaky_store, clock=clock)
    tracker.log_activity("journal", "2024-01-14")

    flaky_store.fail_reads = 1
    with pytest.raises(StorageError):
        tracker.log_activity("sleep", "2024-01-15")

    data = json.loads(flaky_store.get(config.STREAKS_KEY))
    assert list(data) == ["journal"]
    assert data["journal"]["currentStreak"] == 1


def test_failed_freeze_read_does_not_break_streak(flaky_store, clock, monkeypatch):
    recovery = StreakRecovery(flaky_store, clock=clock)
    tracker = StreakTracker(flaky_store, recovery=recovery, clock=clock)
    tracker.log_activity("meditation", "2024-01-13")
    tracker.log_activity("meditation", "2024-01-14")
    clock.set_day("2024-01-15")
    assert recovery.freeze().success

    # streaks read works, the freeze history read fails
    original_get = flaky_store.get

    def get(key):
        if key == config.STREAK_RECOVERY_KEY:
            raise StorageError("connection reset")
        return original_get(key)

    with monkeypatch.context() as m:
        m.setattr(flaky_store, "get", get)
        with pytest.raises(StorageError):
            tracker.log_activity("meditation", "2024-01-16")

    assert json.loads(flaky_store.get(config.STREAKS_KEY))["meditation"]["currentStreak"] == 2
    assert tracker.log_activity("meditation", "2024-01-16").current_streak == 3


def test_badly_typed_record_degrades(store, clock):
    store.set(config.STREAKS_KEY, json.dumps({
        "sleep": {"currentStreak": "abc", "lastLogDate": "2024-01-14"},
        "journal": {"currentStreak": 4, "longestStreak": 4, "lastLogDate": "yesterday", "totalLogs": 4},
        "workout": {"currentStreak": 2, "longestStreak": 5, "lastLogDate": "2024-01-14", "totalLogs": 9},
    }))
    tracker = StreakTracker(store, clock=clock)
    streaks = tracker.get_all_streaks()
    assert streaks["sleep"] == StreakRecord()
    assert streaks["journal"] == StreakRecord()
    assert streaks["workout"].longest_streak == 5
    assert tracker.last_read.degraded

    assert tracker.log_activity("sleep", "2024-01-15").current_streak == 1
    data = json.loads(store.get(config.STREAKS_KEY))
    assert data["workout"]["totalLogs"] == 9
    assert data["journal"]["lastLogDate"] == "yesterday"


def test_frozen_gap_keeps_streak(store, clock, recovery):
    tracker = StreakTracker(store, recovery=recovery, clock=clock)
    tracker.log_activity("meditation", "2024-01-13")
    tracker.log_activity("meditation", "2024-01-14")

    clock.set_day("2024-01-15")
    assert recovery.freeze("sick").success

    rec = tracker.log_activity("meditation", "2024-01-16")
    assert rec.current_streak == 3
    assert rec.longest_streak == 3


def test_partially_frozen_gap_still_breaks(store, clock, recovery):
    tracker = StreakTracker(store, recovery=recovery, clock=clock)
    tracker.log_activity("meditation", "2024-01-12")

    clock.set_day("2024-01-13")
    recovery.freeze()

    # 2024-01-14 was neither logged nor frozen
    rec = tracker.log_activity("meditation", "2024-01-15")
    assert rec.current_streak == 1


def test_gap_without_recovery_breaks(tracker):
    tracker.log_activity("meditation", "2024-01-13")
    assert tracker.log_activity("meditation", "2024-01-15").current_streak == 1


def test_at_risk(tracker):
    tracker.log_activity("sleep", "2024-01-14")
    tracker.log_activity("journal", "2024-01-14")
    tracker.log_activity("journal", "2024-01-15")
    tracker.log_activity("workout", "2024-01-10")
    assert tracker.at_risk("2024-01-15") == ["sleep"]


@pytest.mark.parametrize("n", [7, 14, 30, 60, 90, 180, 365])
def test_milestones(n):
    assert is_milestone(n)
    assert not is_milestone(n + 1)


@pytest.mark.parametrize("n,expected", [(0, 7), (7, 14), (29, 30), (180, 365), (365, 365), (1000, 365)])
def test_next_milestone(n, expected):
    assert next_milestone(n) == expected


def test_messages_and_badges():
    assert streak_message(0, "sleep") == "Start your sleep streak today!"
    assert streak_message(1, "nutrition") == "Great start! Keep going with meal logging"
    assert streak_message(3, "journal") == "3 days of journaling! Keep it up!"
    assert "master" in streak_message(90, "meditation")
    assert streak_badge(0) == "⚪"
    assert streak_badge(100) == "🔥🔥🔥🔥"

"""Tests for kakeibo.reminders — daily reminder schedule."""

from datetime import datetime

import pytest

from kakeibo.reminders import (
    ENABLED_KEY,
    TIMES_KEY,
    ReminderSettings,
    ReminderTime,
)


class TestReminderTime:
    def test_parse(self):
        t = ReminderTime.parse("08:05")
        assert (t.hour, t.minute, t.is_enabled) == (8, 5, True)
        assert t.display_time == "08:05"

    @pytest.mark.parametrize("text", ["24:00", "12:60", "noon", "12", "1:2:3"])
    def test_parse_invalid(self, text):
        with pytest.raises(ValueError):
            ReminderTime.parse(text)


class TestDefaults:
    def test_default_is_2000_enabled(self, repo):
        reminders = ReminderSettings(repo)
        assert [t.display_time for t in reminders.times] == ["20:00"]
        assert reminders.times[0].is_enabled
        assert reminders.enabled is False

    def test_defaults_saved(self, repo):
        ReminderSettings(repo)
        assert repo.get_setting(TIMES_KEY) == [{"hour": 20, "minute": 0, "is_enabled": True}]

    def test_configured_defaults(self, repo):
        reminders = ReminderSettings(repo, default_times=["08:30", "21:00"])
        assert [t.display_time for t in reminders.times] == ["08:30", "21:00"]

    def test_unreadable_times_reset(self, repo):
        repo.set_setting(TIMES_KEY, [{"hour": 99}])
        assert [t.display_time for t in ReminderSettings(repo).times] == ["20:00"]


class TestEditing:
    def test_add_appends_enabled(self, repo):
        reminders = ReminderSettings(repo)
        reminders.add_time(7, 30)
        assert [t.display_time for t in ReminderSettings(repo).times] == ["20:00", "07:30"]

    def test_remove(self, repo):
        reminders = ReminderSettings(repo)
        reminders.add_time(7, 30)
        assert reminders.remove_time(0) is True
        assert [t.display_time for t in reminders.times] == ["07:30"]

    def test_toggle(self, repo):
        reminders = ReminderSettings(repo)
        assert reminders.toggle_time(0) is True
        assert ReminderSettings(repo).times[0].is_enabled is False

    def test_update_keeps_enabled_flag(self, repo):
        reminders = ReminderSettings(repo)
        reminders.toggle_time(0)
        reminders.update_time(0, 21, 15)
        t = ReminderSettings(repo).times[0]
        assert (t.display_time, t.is_enabled) == ("21:15", False)

    @pytest.mark.parametrize("index", [-1, 1, 5])
    def test_out_of_range_ignored(self, repo, index):
        reminders = ReminderSettings(repo)
        assert reminders.remove_time(index) is False
        assert reminders.toggle_time(index) is False
        assert reminders.update_time(index, 1, 1) is False
        assert len(reminders.times) == 1

    def test_reset(self, repo):
        reminders = ReminderSettings(repo)
        reminders.add_time(7, 0)
        reminders.reset_to_default()
        assert [t.display_time for t in reminders.times] == ["20:00"]

    def test_enable_flag_persists(self, repo):
        ReminderSettings(repo).set_enabled(True)
        assert repo.get_setting(ENABLED_KEY) is True
        assert ReminderSettings(repo).enabled is True


class TestSchedule:
    def test_identifiers_number_enabled_times_only(self, repo):
        reminders = ReminderSettings(repo)
        reminders.add_time(7, 0)
        reminders.add_time(12, 0)
        reminders.toggle_time(1)
        ids = [(rid, t.display_time) for rid, t in reminders.request_identifiers()]
        assert ids == [
            ("dailyExpenseReminder_0", "20:00"),
            ("dailyExpenseReminder_1", "12:00"),
        ]

    def test_next_due_none_when_disabled(self, repo):
        assert ReminderSettings(repo).next_due(datetime(2025, 7, 1, 12, 0)) is None

    def test_next_due_today(self, repo):
        reminders = ReminderSettings(repo)
        reminders.set_enabled(True)
        assert reminders.next_due(datetime(2025, 7, 1, 12, 0)) == datetime(2025, 7, 1, 20, 0)

    def test_next_due_rolls_to_tomorrow(self, repo):
        reminders = ReminderSettings(repo)
        reminders.set_enabled(True)
        reminders.add_time(7, 30)
        assert reminders.next_due(datetime(2025, 7, 1, 20, 0)) == datetime(2025, 7, 2, 7, 30)

    def test_next_due_none_without_enabled_times(self, repo):
        reminders = ReminderSettings(repo)
        reminders.set_enabled(True)
        reminders.toggle_time(0)
        assert reminders.next_due(datetime(2025, 7, 1, 12, 0)) is None

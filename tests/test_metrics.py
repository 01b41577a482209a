"""Tests for the pure session arithmetic."""

import datetime as dt

import pytest

from lingomate import metrics

UTC = metrics.get_timezone("UTC")
SEOUL = metrics.get_timezone("Asia/Seoul")
NOW = dt.datetime(2026, 3, 10, 12, 0, 0)


class TestSessionMinutes:
	def test_short_session_gets_one_minute(self):
		assert metrics.session_minutes(45, 3) == 1

	def test_wall_time_dominates(self):
		assert metrics.session_minutes(400, 30) == 7

	def test_message_density_dominates(self):
		# 2 minutes of wall time but 25 messages -> ceil(25/6) = 5
		assert metrics.session_minutes(120, 25) == 5

	def test_empty_session_floors_at_one(self):
		assert metrics.session_minutes(0, 0) == 1

	def test_duration_clamps_clock_skew(self):
		start = dt.datetime(2026, 3, 10, 12, 0, 10)
		assert metrics.duration_seconds(start, start - dt.timedelta(seconds=30)) == 0

	def test_duration_whole_seconds(self):
		start = dt.datetime(2026, 3, 10, 12, 0, 0)
		assert metrics.duration_seconds(start, start + dt.timedelta(seconds=59, milliseconds=900)) == 59


class TestNormalizeTranscript:
	def test_sender_case_insensitive(self):
		turns = metrics.normalize_transcript([
			{"from": "user", "text": "a"},
			{"from": "User", "text": "b"},
			{"from": "USER", "text": "c"},
			{"from": "Ai", "text": "d"},
		])
		assert [t["sender"] for t in turns] == ["USER", "USER", "USER", "AI"]

	def test_malformed_turns_dropped(self):
		turns = metrics.normalize_transcript([
			{"from": "user"},
			{"text": "no role"},
			{"from": "narrator", "text": "unknown role"},
			{"from": "ai", "text": None},
			"not a dict",
			{"from": "ai", "text": "kept"},
		])
		assert turns == [{"sender": "AI", "text": "kept"}]

	def test_order_preserved(self):
		script = [{"from": "user", "text": str(i)} for i in range(5)]
		assert [t["text"] for t in metrics.normalize_transcript(script)] == ["0", "1", "2", "3", "4"]


class TestScore:
	def test_heuristic(self):
		turns = metrics.normalize_transcript([
			{"from": "user", "text": "Hi"},
			{"from": "ai", "text": "Hello"},
			{"from": "user", "text": "Bye"},
		])
		assert metrics.resolve_score(None, turns) == 64

	def test_heuristic_counts_characters(self):
		turns = [{"sender": "USER", "text": "x" * 85}]
		# 40 + 12 + floor(85/40)
		assert metrics.heuristic_score(turns) == 54

	def test_heuristic_clamped_to_100(self):
		turns = [{"sender": "USER", "text": "hello"}] * 10
		assert metrics.heuristic_score(turns) == 100

	@pytest.mark.parametrize("given,expected", [(72.5, 73), (72.4, 72), (-5, 0), (140, 100), (88, 88)])
	def test_explicit_score_clamped_and_rounded(self, given, expected):
		assert metrics.resolve_score(given, []) == expected

	@pytest.mark.parametrize("given", [float("nan"), float("inf"), "90", True])
	def test_non_finite_or_non_numeric_falls_back(self, given):
		assert metrics.resolve_score(given, []) == 40


class TestStreak:
	def test_yesterday_increments(self):
		assert metrics.next_streak(4, NOW - dt.timedelta(days=1), NOW, UTC) == 5

	def test_two_day_gap_resets(self):
		assert metrics.next_streak(4, NOW - dt.timedelta(days=2), NOW, UTC) == 1

	def test_same_day_unchanged(self):
		assert metrics.next_streak(4, NOW - dt.timedelta(hours=3), NOW, UTC) == 4

	def test_first_study_starts_at_one(self):
		assert metrics.next_streak(0, None, NOW, UTC) == 1

	def test_calendar_day_not_24_hours(self):
		late = dt.datetime(2026, 3, 9, 23, 50)
		early = dt.datetime(2026, 3, 10, 0, 10)
		assert metrics.next_streak(2, late, early, UTC) == 3

	def test_days_follow_configured_timezone(self):
		# 16:00 UTC on the 10th is already the 11th in Seoul
		last = dt.datetime(2026, 3, 10, 10, 0)
		now = dt.datetime(2026, 3, 10, 16, 0)
		assert metrics.next_streak(1, last, now, UTC) == 1
		assert metrics.next_streak(1, last, now, SEOUL) == 2


class TestProgressFlags:
	def test_window_ends_today(self):
		finishes = [NOW, NOW - dt.timedelta(days=3), NOW - dt.timedelta(days=20)]
		flags = metrics.progress_flags(finishes, NOW, UTC, 12)
		assert len(flags) == 12
		assert flags[-1] == 1
		assert flags[-4] == 1
		assert sum(flags) == 2

	def test_multiple_sessions_same_day_single_flag(self):
		flags = metrics.progress_flags([NOW, NOW - dt.timedelta(hours=1)], NOW, UTC, 12)
		assert sum(flags) == 1

	def test_day_start_in_timezone(self):
		# Seoul midnight of the 10th is 15:00 UTC on the 9th
		start = metrics.local_day_start_utc(dt.datetime(2026, 3, 10, 3, 0), SEOUL)
		assert start == dt.datetime(2026, 3, 9, 15, 0)

"""Tests for the statistics aggregator."""

import datetime as dt

from conftest import ALICE
from lingomate.models import Conversation, Message
from lingomate.stats import StatsAggregator
from lingomate.users import find_user_by_external_id

NOW = dt.datetime(2026, 3, 10, 12, 0, 0)


def add_conversation(database, *, started_at, finished_at=None, score=None, messages=0, sub=ALICE):
	with database.session() as db, db.begin():
		user = find_user_by_external_id(db, sub)
		conv = Conversation(user_id=user.id, started_at=started_at, finished_at=finished_at, score=score)
		db.add(conv)
		db.flush()
		for i in range(messages):
			db.add(Message(conversation_id=conv.id, sender="USER" if i % 2 == 0 else "AI", content=f"m{i}"))
		return conv.id


class TestGetStats:
	def test_new_user_is_empty(self, aggregator, alice):
		stats = aggregator.get_stats(alice)
		assert stats.total_sessions == 0
		assert stats.total_minutes == 0
		assert stats.avg_score == 0
		assert stats.best_score == 0
		assert stats.streak == 0
		assert stats.progress == [0] * 12

	def test_average_ignores_unscored_sessions(self, aggregator, database, alice):
		for score in (80, None, 60):
			add_conversation(database, started_at=NOW - dt.timedelta(hours=2), finished_at=NOW - dt.timedelta(hours=1), score=score)
		stats = aggregator.get_stats(alice)
		assert stats.total_sessions == 3
		assert stats.avg_score == 70
		assert stats.best_score == 80

	def test_unfinished_sessions_ignored(self, aggregator, database, alice):
		add_conversation(database, started_at=NOW - dt.timedelta(hours=1), score=None)
		add_conversation(database, started_at=NOW - dt.timedelta(hours=1), finished_at=NOW, score=50)
		stats = aggregator.get_stats(alice)
		assert stats.total_sessions == 1
		assert stats.avg_score == 50

	def test_minutes_recomputed_per_session(self, aggregator, database, alice):
		# 45s with 3 messages -> 1; 400s with 30 messages -> 7; 60s with 25 messages -> 5
		add_conversation(database, started_at=NOW - dt.timedelta(seconds=45), finished_at=NOW, messages=3)
		add_conversation(database, started_at=NOW - dt.timedelta(seconds=400), finished_at=NOW, messages=30)
		add_conversation(database, started_at=NOW - dt.timedelta(seconds=60), finished_at=NOW, messages=25)
		assert aggregator.get_stats(alice).total_minutes == 13

	def test_progress_window(self, aggregator, database, alice):
		for days_ago in (0, 3, 11, 12, 30):
			finished = NOW - dt.timedelta(days=days_ago)
			add_conversation(database, started_at=finished - dt.timedelta(minutes=5), finished_at=finished)
		progress = aggregator.get_stats(alice).progress
		assert len(progress) == 12
		assert progress[0] == 1  # 11 days ago
		assert progress[-4] == 1
		assert progress[-1] == 1
		assert sum(progress) == 3

	def test_progress_length_is_configurable(self, database, clock, alice):
		aggregator = StatsAggregator(database, clock=clock, progress_days=7)
		assert len(aggregator.get_stats(alice).progress) == 7

	def test_streak_and_words_come_from_stats_row(self, lifecycle, aggregator, alice):
		session_id = lifecycle.start(alice).session_id
		lifecycle.finish(alice, session_id, [{"from": "user", "text": "one"}, {"from": "user", "text": "two"}])
		stats = aggregator.get_stats(alice)
		assert stats.streak == 1
		assert stats.new_words_learned == 2
		assert stats.total_minutes == 1

	def test_wire_keys(self, aggregator, alice):
		assert set(aggregator.get_stats(alice).as_dict()) == {
			"totalSessions", "totalMinutes", "avgScore", "bestScore", "streak", "newWordsLearned", "progress",
		}


class TestHomeStatus:
	def test_counts_sessions_started_today(self, aggregator, database, alice):
		add_conversation(database, started_at=NOW - dt.timedelta(hours=3))
		add_conversation(database, started_at=NOW - dt.timedelta(hours=1), finished_at=NOW)
		add_conversation(database, started_at=NOW - dt.timedelta(days=1))
		assert aggregator.get_home_status(alice) == {"todayConversationCount": 2, "subscription": "free"}

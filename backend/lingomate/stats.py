"""Read-only rollups over a user's finished conversations."""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlalchemy import func, select

from . import metrics
from .db import Database
from .models import Conversation, Message
from .sessions import Clock, utc_now
from .users import find_user_by_external_id


@dataclass
class StatsSummary:
	total_sessions: int = 0
	total_minutes: int = 0
	avg_score: int = 0
	best_score: int = 0
	streak: int = 0
	new_words_learned: int = 0
	progress: List[int] = field(default_factory=list)

	def as_dict(self) -> Dict[str, Any]:
		return {
			"totalSessions": self.total_sessions,
			"totalMinutes": self.total_minutes,
			"avgScore": self.avg_score,
			"bestScore": self.best_score,
			"streak": self.streak,
			"newWordsLearned": self.new_words_learned,
			"progress": list(self.progress),
		}


class StatsAggregator:
	"""
	Read-only rollups over a user's conversations.

	Rules:
	  1) Minutes are recomputed per finished session with the same formula used at
	     finish time, from stored timestamps and stored message rows.
	  2) Sessions without a score are left out of avg/best instead of counting as 0.
	  3) Streak and sentence totals come straight from the user's stats row.
	"""

	def __init__(self, database: Database, *, clock: Clock = utc_now, timezone: str = "UTC", progress_days: int = 12) -> None:
		self.database = database
		self.clock = clock
		self.tz = metrics.get_timezone(timezone)
		self.progress_days = progress_days

	def get_stats(self, user_id: str) -> StatsSummary:
		now = metrics.to_naive_utc(self.clock())
		with self.database.session() as db:
			user = find_user_by_external_id(db, user_id)
			message_counts = (
				select(Message.conversation_id, func.count(Message.id).label("n"))
				.group_by(Message.conversation_id)
				.subquery()
			)
			rows = db.execute(
				select(
					Conversation.started_at,
					Conversation.finished_at,
					Conversation.score,
					func.coalesce(message_counts.c.n, 0),
				)
				.outerjoin(message_counts, message_counts.c.conversation_id == Conversation.id)
				.where(Conversation.user_id == user.id, Conversation.finished_at.is_not(None))
			).all()
			stats = user.stats

			total_minutes = 0
			for started_at, finished_at, _score, msg_count in rows:
				total_minutes += metrics.session_minutes(
					metrics.duration_seconds(started_at, finished_at), int(msg_count)
				)

			scored = [r[2] for r in rows if r[2] is not None]
			avg_score = metrics.round_half_up(sum(scored) / len(scored)) if scored else 0
			best_score = max(scored) if scored else 0

			window_start = metrics.local_day_start_utc(now, self.tz) - dt.timedelta(days=self.progress_days - 1)
			recent = [r[1] for r in rows if r[1] >= window_start]

			return StatsSummary(
				total_sessions=len(rows),
				total_minutes=total_minutes,
				avg_score=avg_score,
				best_score=best_score,
				streak=stats.study_streak if stats else 0,
				new_words_learned=stats.total_sentences if stats else 0,
				progress=metrics.progress_flags(recent, now, self.tz, self.progress_days),
			)

	def get_home_status(self, user_id: str) -> Dict[str, Any]:
		"""Conversations started since local midnight, plus the plan name."""
		now = metrics.to_naive_utc(self.clock())
		today_start = metrics.local_day_start_utc(now, self.tz)
		with self.database.session() as db:
			user = find_user_by_external_id(db, user_id)
			today_count = db.execute(
				select(func.count(Conversation.id)).where(
					Conversation.user_id == user.id, Conversation.started_at >= today_start
				)
			).scalar_one()
			return {
				"todayConversationCount": today_count,
				"subscription": user.subscription.plan_name if user.subscription else "free",
			}

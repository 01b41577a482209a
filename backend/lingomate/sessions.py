"""
Conversation-session lifecycle: start, finish, read, history, delete.

Finishing is the only multi-step write. It runs as one transaction guarded by a
conditional update on ``finished_at IS NULL`` so that stats are credited exactly
once per session, even when two finish calls race.
"""
from __future__ import annotations

import datetime as dt
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from . import metrics
from .db import Database
from .errors import AlreadyFinished, InvalidArgument, NotFound, StorageFailure
from .models import SENDER_USER, Conversation, Message, UserStats
from .users import find_user_by_external_id

logger = logging.getLogger(__name__)

Clock = Callable[[], dt.datetime]


def utc_now() -> dt.datetime:
	return dt.datetime.now(dt.timezone.utc)


@dataclass
class StartResult:
	session_id: int
	start_time: dt.datetime


@dataclass
class FinishResult:
	session_id: int
	saved_messages: int
	minutes_added: int
	sentences_added: int
	score_saved: int

	def as_dict(self) -> Dict[str, int]:
		return {
			"sessionId": self.session_id,
			"savedMessages": self.saved_messages,
			"minutesAdded": self.minutes_added,
			"sentencesAdded": self.sentences_added,
			"scoreSaved": self.score_saved,
		}


def _script(messages: Sequence[Message]) -> List[Dict[str, str]]:
	return [{"from": m.sender.lower(), "text": m.content} for m in messages]


def _load_full_script(raw: Optional[str]) -> Optional[List[Any]]:
	if not raw:
		return None
	try:
		return json.loads(raw)
	except ValueError:
		logger.warning("stored transcript is not valid JSON; omitting")
		return None


class SessionLifecycle:
	def __init__(self, database: Database, *, clock: Clock = utc_now, timezone: str = "UTC") -> None:
		self.database = database
		self.clock = clock
		self.tz = metrics.get_timezone(timezone)

	def _now(self) -> dt.datetime:
		return metrics.to_naive_utc(self.clock())

	def start(self, user_id: str) -> StartResult:
		now = self._now()
		try:
			with self.database.session() as db, db.begin():
				user = find_user_by_external_id(db, user_id)
				conv = Conversation(
					user_id=user.id,
					started_at=now,
					country_used=user.country_pref,
					style_used=user.style_pref,
					gender_used=user.gender_pref,
				)
				db.add(conv)
				db.flush()
				result = StartResult(session_id=conv.id, start_time=metrics.as_utc(conv.started_at))
		except SQLAlchemyError as exc:
			logger.exception("start failed user=%s", user_id)
			raise StorageFailure("Failed to start session") from exc
		logger.info("session started user=%s session=%s", user_id, result.session_id)
		return result

	def finish(self, user_id: str, session_id: int, transcript: Any, score: Any = None) -> FinishResult:
		if not isinstance(session_id, int) or isinstance(session_id, bool) or session_id <= 0:
			raise InvalidArgument("sessionId must be a positive integer")
		if not isinstance(transcript, (list, tuple)):
			raise InvalidArgument("script must be an array")

		turns = metrics.normalize_transcript(transcript)
		sentences = sum(1 for t in turns if t["sender"] == SENDER_USER)
		final_score = metrics.resolve_score(score, turns)
		now = self._now()

		try:
			with self.database.session() as db, db.begin():
				user = find_user_by_external_id(db, user_id)
				conv = db.execute(
					select(Conversation).where(Conversation.id == session_id, Conversation.user_id == user.id)
				).scalar_one_or_none()
				if conv is None:
					raise NotFound("Conversation not found")
				if conv.finished_at is not None:
					raise AlreadyFinished(session_id)

				minutes = metrics.session_minutes(metrics.duration_seconds(conv.started_at, now), len(turns))

				# Only one caller can move finished_at off NULL
				claimed = db.execute(
					update(Conversation)
					.where(
						Conversation.id == session_id,
						Conversation.user_id == user.id,
						Conversation.finished_at.is_(None),
					)
					.values(finished_at=now, score=final_score, full_script=json.dumps(list(transcript), default=str))
					.execution_options(synchronize_session=False)
				)
				if claimed.rowcount != 1:
					raise AlreadyFinished(session_id)

				self._replace_messages(db, session_id, turns)
				self._credit_stats(db, user.id, minutes, sentences, now)
		except (NotFound, AlreadyFinished):
			logger.info("finish rejected user=%s session=%s", user_id, session_id)
			raise
		except SQLAlchemyError as exc:
			logger.exception("finish transaction rolled back user=%s session=%s", user_id, session_id)
			raise StorageFailure("Failed to save conversation") from exc

		result = FinishResult(
			session_id=session_id,
			saved_messages=len(turns),
			minutes_added=minutes,
			sentences_added=sentences,
			score_saved=final_score,
		)
		logger.info(
			"session finished user=%s session=%s messages=%s minutes=%s score=%s",
			user_id, session_id, result.saved_messages, minutes, final_score,
		)
		return result

	def _replace_messages(self, db: Session, session_id: int, turns: List[Dict[str, str]]) -> None:
		db.execute(delete(Message).where(Message.conversation_id == session_id))
		if turns:
			db.add_all(
				Message(conversation_id=session_id, sender=t["sender"], content=t["text"]) for t in turns
			)
			db.flush()

	def _credit_stats(self, db: Session, user_pk: int, minutes: int, sentences: int, now: dt.datetime) -> None:
		stats = db.execute(
			select(UserStats).where(UserStats.user_id == user_pk).with_for_update()
		).scalar_one_or_none()
		if stats is None:
			stats = UserStats(user_id=user_pk, total_sentences=0, total_time_mins=0, study_streak=0)
			db.add(stats)
		stats.study_streak = metrics.next_streak(stats.study_streak or 0, stats.last_study_date, now, self.tz)
		stats.total_time_mins = (stats.total_time_mins or 0) + minutes
		stats.total_sentences = (stats.total_sentences or 0) + sentences
		stats.last_study_date = now
		db.flush()

	def get_session(self, session_id: int, user_id: Optional[str] = None) -> Dict[str, Any]:
		with self.database.session() as db:
			conv = db.execute(
				select(Conversation).options(selectinload(Conversation.messages)).where(Conversation.id == session_id)
			).scalar_one_or_none()
			if conv is None:
				raise NotFound("Conversation not found")
			if user_id is not None:
				owner = find_user_by_external_id(db, user_id)
				if conv.user_id != owner.id:
					raise NotFound("Conversation not found")
			return {
				"sessionId": conv.id,
				"script": _script(conv.messages),
				"fullScript": _load_full_script(conv.full_script),
			}

	def get_history(self, user_id: str) -> Dict[str, Any]:
		with self.database.session() as db:
			user = find_user_by_external_id(db, user_id)
			rows = db.execute(
				select(Conversation)
				.options(selectinload(Conversation.messages))
				.where(Conversation.user_id == user.id)
				.order_by(Conversation.started_at.desc(), Conversation.id.desc())
			).scalars().all()
			return {
				"history": [
					{
						"sessionId": c.id,
						"startTime": metrics.as_utc(c.started_at),
						"finishedAt": metrics.as_utc(c.finished_at),
						"score": c.score,
						"script": _script(c.messages),
					}
					for c in rows
				]
			}

	def delete(self, user_id: str, session_id: Optional[int] = None, *, all: bool = False) -> Dict[str, int]:
		if not all and session_id is None:
			raise InvalidArgument("Provide sessionId or all:true")
		try:
			with self.database.session() as db, db.begin():
				user = find_user_by_external_id(db, user_id)
				if all:
					ids = select(Conversation.id).where(Conversation.user_id == user.id)
				else:
					ids = select(Conversation.id).where(Conversation.id == session_id, Conversation.user_id == user.id)
				targets = list(db.execute(ids).scalars())
				if not all and not targets:
					raise NotFound("Conversation not found")
				if targets:
					db.execute(delete(Message).where(Message.conversation_id.in_(targets)))
					db.execute(delete(Conversation).where(Conversation.id.in_(targets)))
		except SQLAlchemyError as exc:
			logger.exception("delete failed user=%s session=%s all=%s", user_id, session_id, all)
			raise StorageFailure("Delete failed") from exc
		logger.info("sessions deleted user=%s count=%s", user_id, len(targets))
		return {"deletedCount": len(targets)}

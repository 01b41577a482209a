"""Pure session arithmetic: transcript normalization, minutes, score, streak, day buckets."""
from __future__ import annotations

import datetime as dt
import math
from numbers import Real
from typing import Any, Dict, Iterable, List, Optional

import pytz

from .models import SENDER_AI, SENDER_USER

_SENDERS = {"user": SENDER_USER, "ai": SENDER_AI}

# One minute of credit per this many messages, whatever the wall time
MESSAGES_PER_MINUTE = 6


def normalize_transcript(script: Iterable[Any]) -> List[Dict[str, str]]:
	"""
	Keep the well-formed turns of a client transcript, in order.
	A turn is well-formed when it is a mapping with a string `from` equal to
	"user" or "ai" (any case) and a string `text`. Others are dropped.
	"""
	turns: List[Dict[str, str]] = []
	for raw in script:
		if not isinstance(raw, dict):
			continue
		role = raw.get("from")
		text = raw.get("text")
		if not isinstance(role, str) or not isinstance(text, str):
			continue
		sender = _SENDERS.get(role.strip().lower())
		if sender is None:
			continue
		turns.append({"sender": sender, "text": text})
	return turns


def duration_seconds(started_at: dt.datetime, finished_at: Optional[dt.datetime]) -> int:
	"""Whole seconds between two timestamps, floored at 0 against clock skew."""
	if finished_at is None:
		return 0
	return max(0, int(math.floor((finished_at - started_at).total_seconds())))


def session_minutes(duration_secs: int, message_count: int) -> int:
	"""max(1, ceil(duration/60), ceil(messages/6))."""
	time_based = math.ceil(max(0, duration_secs) / 60)
	message_based = math.ceil(max(0, message_count) / MESSAGES_PER_MINUTE)
	return max(1, time_based, message_based)


def round_half_up(value: float) -> int:
	return int(math.floor(value + 0.5))


def _clamp(value: int, low: int = 0, high: int = 100) -> int:
	return max(low, min(high, value))


def heuristic_score(turns: List[Dict[str, str]]) -> int:
	user_turns = [t for t in turns if t["sender"] == SENDER_USER]
	chars = sum(len(t["text"]) for t in user_turns)
	return _clamp(40 + 12 * len(user_turns) + chars // 40)


def resolve_score(explicit: Any, turns: List[Dict[str, str]]) -> int:
	"""Use a finite caller-supplied score (clamped, rounded), else the heuristic."""
	if isinstance(explicit, Real) and not isinstance(explicit, bool) and math.isfinite(explicit):
		return _clamp(round_half_up(float(explicit)))
	return heuristic_score(turns)


def get_timezone(name: str) -> dt.tzinfo:
	return pytz.timezone(name)


def to_naive_utc(d: dt.datetime) -> dt.datetime:
	"""Storage form: naive datetime in UTC."""
	if d.tzinfo is None:
		return d
	return d.astimezone(pytz.utc).replace(tzinfo=None)


def as_utc(d: Optional[dt.datetime]) -> Optional[dt.datetime]:
	"""Attach UTC to a stored naive timestamp for output."""
	if d is None or d.tzinfo is not None:
		return d
	return pytz.utc.localize(d)


def local_day(d: dt.datetime, tz: dt.tzinfo) -> dt.date:
	"""Calendar date of a (naive-UTC or aware) datetime in the given timezone."""
	if d.tzinfo is None:
		d = pytz.utc.localize(d)
	return d.astimezone(tz).date()


def local_day_start_utc(d: dt.datetime, tz: dt.tzinfo) -> dt.datetime:
	"""Start of the local calendar day containing `d`, as naive UTC."""
	day = local_day(d, tz)
	start = dt.datetime(day.year, day.month, day.day)
	if hasattr(tz, "localize"):
		start = tz.localize(start)
	else:
		start = start.replace(tzinfo=tz)
	return to_naive_utc(start)


def next_streak(current: int, last_study_date: Optional[dt.datetime], now: dt.datetime, tz: dt.tzinfo) -> int:
	"""
	Streak after a finish at `now`:
	  - already studied today -> unchanged
	  - last studied yesterday -> +1
	  - otherwise (gap or never) -> 1
	"""
	today = local_day(now, tz)
	if last_study_date is not None:
		prev = local_day(last_study_date, tz)
		if prev == today:
			return current
		if prev == today - dt.timedelta(days=1):
			return current + 1
	return 1


def progress_flags(finish_times: Iterable[dt.datetime], now: dt.datetime, tz: dt.tzinfo, days: int) -> List[int]:
	"""One 0/1 flag per local day, oldest first, ending with today."""
	today = local_day(now, tz)
	first = today - dt.timedelta(days=days - 1)
	active = {local_day(t, tz) for t in finish_times if t is not None}
	return [1 if first + dt.timedelta(days=i) in active else 0 for i in range(days)]

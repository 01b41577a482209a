"""User directory: identity lookup, first-sight upsert, profile and preference updates."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db import Database
from .errors import NotFound, StorageFailure
from .models import Subscription, User, UserStats

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
	if isinstance(value, str) and value.strip():
		return value.strip()
	return None


def find_user_by_external_id(db: Session, external_id: str) -> User:
	user = db.execute(select(User).where(User.auth0_sub == external_id)).scalar_one_or_none()
	if user is None:
		raise NotFound("User not found")
	return user


def preferences(user: User) -> Dict[str, str]:
	return {"country": user.country_pref, "style": user.style_pref, "gender": user.gender_pref}


def profile(user: User) -> Dict[str, Any]:
	return {
		"userId": user.id,
		"email": user.email,
		"name": user.username,
		"avatarUrl": user.avatar_url,
		"subscription": user.subscription.plan_name if user.subscription else "free",
		**preferences(user),
		"streak": user.stats.study_streak if user.stats else 0,
	}


class UserDirectory:
	def __init__(self, database: Database) -> None:
		self.database = database

	def ensure_user(
		self,
		external_id: str,
		*,
		username: Optional[str] = None,
		email: Optional[str] = None,
		avatar_url: Optional[str] = None,
	) -> Dict[str, Any]:
		"""Create the user (with zeroed stats and a free plan) on first sight; update supplied fields otherwise."""
		username, email, avatar_url = _clean(username), _clean(email), _clean(avatar_url)
		try:
			with self.database.session() as db, db.begin():
				user = db.execute(select(User).where(User.auth0_sub == external_id)).scalar_one_or_none()
				if user is None:
					user = User(
						auth0_sub=external_id,
						username=username or "User",
						email=email,
						avatar_url=avatar_url,
						stats=UserStats(total_sentences=0, total_time_mins=0, study_streak=0, last_study_date=None),
						subscription=Subscription(plan_name="free", is_active=True),
					)
					db.add(user)
					db.flush()
					logger.info("user created sub=%s id=%s", external_id, user.id)
				else:
					if username:
						user.username = username
					if email:
						user.email = email
					if avatar_url:
						user.avatar_url = avatar_url
				return {
					"auth0Id": external_id,
					"userId": user.id,
					"email": user.email,
					"name": user.username,
					"avatarUrl": user.avatar_url,
					"subscription": user.subscription.plan_name if user.subscription else "free",
				}
		except SQLAlchemyError as exc:
			logger.exception("user upsert failed sub=%s", external_id)
			raise StorageFailure("Failed to sync user") from exc

	def get_profile(self, external_id: str) -> Dict[str, Any]:
		with self.database.session() as db:
			return profile(find_user_by_external_id(db, external_id))

	def update_profile(
		self,
		external_id: str,
		*,
		name: Optional[str] = None,
		avatar_url: Optional[str] = None,
		country: Optional[str] = None,
		style: Optional[str] = None,
		gender: Optional[str] = None,
	) -> Dict[str, Any]:
		changes = {
			"username": _clean(name),
			"avatar_url": _clean(avatar_url),
			"country_pref": _clean(country),
			"style_pref": _clean(style),
			"gender_pref": _clean(gender),
		}
		try:
			with self.database.session() as db, db.begin():
				user = find_user_by_external_id(db, external_id)
				for field, value in changes.items():
					if value is not None:
						setattr(user, field, value)
				db.flush()
				return profile(user)
		except SQLAlchemyError as exc:
			logger.exception("profile update failed sub=%s", external_id)
			raise StorageFailure("Update failed") from exc

	def get_settings(self, external_id: str) -> Dict[str, str]:
		with self.database.session() as db:
			return preferences(find_user_by_external_id(db, external_id))

	def update_settings(
		self,
		external_id: str,
		*,
		country: Optional[str] = None,
		style: Optional[str] = None,
		gender: Optional[str] = None,
	) -> Dict[str, str]:
		data = self.update_profile(external_id, country=country, style=style, gender=gender)
		return {"country": data["country"], "style": data["style"], "gender": data["gender"]}

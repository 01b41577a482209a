from __future__ import annotations
from datetime import datetime
from sqlalchemy import Boolean, Column, String, DateTime, Integer, Text, ForeignKey
from sqlalchemy.orm import relationship
from .db import Base


SENDER_USER = "USER"
SENDER_AI = "AI"


class User(Base):
	__tablename__ = "users"
	id = Column(Integer, primary_key=True, autoincrement=True)
	# Auth0 subject ("auth0|abc123"), the external identity
	auth0_sub = Column(String(128), unique=True, index=True, nullable=False)
	username = Column(String(128), default="User", nullable=False)
	email = Column(String(256), nullable=True)
	avatar_url = Column(String(512), nullable=True)
	# Conversation preferences, snapshotted onto each conversation at start
	country_pref = Column(String(16), default="us", nullable=False)
	style_pref = Column(String(32), default="casual", nullable=False)
	gender_pref = Column(String(16), default="female", nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	stats = relationship("UserStats", back_populates="user", uselist=False, cascade="all, delete-orphan")
	subscription = relationship("Subscription", back_populates="user", uselist=False, cascade="all, delete-orphan")
	conversations = relationship("Conversation", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)


class UserStats(Base):
	__tablename__ = "user_stats"
	id = Column(Integer, primary_key=True, autoincrement=True)
	user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
	# USER-sender messages across finished conversations
	total_sentences = Column(Integer, default=0, nullable=False)
	total_time_mins = Column(Integer, default=0, nullable=False)
	study_streak = Column(Integer, default=0, nullable=False)
	last_study_date = Column(DateTime, nullable=True)

	user = relationship("User", back_populates="stats")


class Subscription(Base):
	__tablename__ = "subscriptions"
	id = Column(Integer, primary_key=True, autoincrement=True)
	user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
	plan_name = Column(String(32), default="free", nullable=False)
	is_active = Column(Boolean, default=True, nullable=False)
	expires_at = Column(DateTime, nullable=True)

	user = relationship("User", back_populates="subscription")


class Conversation(Base):
	__tablename__ = "conversations"
	id = Column(Integer, primary_key=True, autoincrement=True)
	user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
	started_at = Column(DateTime, default=datetime.utcnow, index=True, nullable=False)
	# Set exactly once, by finish
	finished_at = Column(DateTime, nullable=True, index=True)
	country_used = Column(String(16), nullable=True)
	style_used = Column(String(32), nullable=True)
	gender_used = Column(String(16), nullable=True)
	full_script = Column(Text, nullable=True)  # JSON string of the submitted transcript
	score = Column(Integer, nullable=True)

	user = relationship("User", back_populates="conversations")
	messages = relationship(
		"Message",
		back_populates="conversation",
		order_by="Message.id",
		cascade="all, delete-orphan",
		passive_deletes=True,
	)


class Message(Base):
	__tablename__ = "messages"
	id = Column(Integer, primary_key=True, autoincrement=True)
	conversation_id = Column(Integer, ForeignKey("conversations.id", ondelete="CASCADE"), index=True, nullable=False)
	sender = Column(String(8), nullable=False)  # USER | AI
	content = Column(Text, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	conversation = relationship("Conversation", back_populates="messages")

from __future__ import annotations
from typing import Optional
from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from fastapi import Request


Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
	cursor = dbapi_connection.cursor()
	cursor.execute("PRAGMA foreign_keys=ON")
	cursor.close()


class Database:
	"""Store handle owning the engine and the session factory.

	Opened once on process start and closed on shutdown; request handlers and
	the core services receive it explicitly instead of importing a module global.
	"""

	def __init__(self, url: str) -> None:
		self.url = url
		self._engine: Optional[Engine] = None
		self._sessionmaker: Optional[sessionmaker] = None

	@property
	def engine(self) -> Engine:
		if self._engine is None:
			raise RuntimeError("Database is not open")
		return self._engine

	@property
	def is_open(self) -> bool:
		return self._engine is not None

	def open(self) -> "Database":
		if self._engine is not None:
			return self
		kwargs = {"future": True}
		if self.url.startswith("sqlite"):
			kwargs["connect_args"] = {"check_same_thread": False}
			if self.url in ("sqlite://", "sqlite:///:memory:"):
				# One shared connection, otherwise every checkout sees an empty database
				kwargs["poolclass"] = StaticPool
		engine = create_engine(self.url, **kwargs)
		if self.url.startswith("sqlite"):
			event.listen(engine, "connect", _enable_sqlite_foreign_keys)
		self._engine = engine
		self._sessionmaker = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True, expire_on_commit=False)
		# Import registers the mapped classes on Base.metadata
		from . import models  # noqa: F401
		Base.metadata.create_all(bind=engine)
		ensure_schema(engine)
		return self

	def close(self) -> None:
		if self._engine is not None:
			self._engine.dispose()
		self._engine = None
		self._sessionmaker = None

	def session(self) -> Session:
		if self._sessionmaker is None:
			raise RuntimeError("Database is not open")
		return self._sessionmaker()


def get_database(request: Request) -> Database:
	return request.app.state.database


# Best-effort lightweight migrations for databases created before score/transcript existed
def ensure_schema(engine: Engine) -> None:
	inspector = inspect(engine)
	tables = set(inspector.get_table_names())
	if "conversations" in tables:
		cols = {c["name"] for c in inspector.get_columns("conversations")}
		with engine.begin() as conn:
			if "score" not in cols:
				conn.exec_driver_sql("ALTER TABLE conversations ADD COLUMN score INTEGER")
			if "full_script" not in cols:
				conn.exec_driver_sql("ALTER TABLE conversations ADD COLUMN full_script TEXT")

import datetime as dt

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from lingomate.db import Database
from lingomate.main import create_app
from lingomate.sessions import SessionLifecycle
from lingomate.settings import Settings
from lingomate.stats import StatsAggregator
from lingomate.users import UserDirectory

TEST_SECRET = "test-secret"
ALICE = "auth0|alice"
BOB = "auth0|bob"


class FrozenClock:
	def __init__(self, now: dt.datetime) -> None:
		self.now = now

	def __call__(self) -> dt.datetime:
		return self.now

	def advance(self, **kwargs) -> None:
		self.now = self.now + dt.timedelta(**kwargs)


@pytest.fixture
def clock():
	return FrozenClock(dt.datetime(2026, 3, 10, 12, 0, 0, tzinfo=dt.timezone.utc))


@pytest.fixture
def database():
	db = Database("sqlite://").open()
	yield db
	db.close()


@pytest.fixture
def directory(database):
	return UserDirectory(database)


@pytest.fixture
def lifecycle(database, clock):
	return SessionLifecycle(database, clock=clock)


@pytest.fixture
def aggregator(database, clock):
	return StatsAggregator(database, clock=clock)


@pytest.fixture
def alice(directory):
	directory.ensure_user(ALICE, username="Alice")
	return ALICE


@pytest.fixture
def settings():
	return Settings(
		DATABASE_URL="sqlite://",
		JWT_SECRET_KEY=TEST_SECRET,
		JWT_ALGORITHM="HS256",
		AUTH0_DOMAIN=None,
		AUTH0_AUDIENCE=None,
		_env_file=None,
	)


@pytest.fixture
def client(settings, database, clock):
	app = create_app(settings, database=database, clock=clock)
	with TestClient(app) as c:
		yield c


def make_token(sub: str, secret: str = TEST_SECRET) -> str:
	return jwt.encode({"sub": sub}, secret, algorithm="HS256")


def auth_headers(sub: str = ALICE) -> dict:
	return {"Authorization": f"Bearer {make_token(sub)}"}

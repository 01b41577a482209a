from fastapi import Request

from ..db import Database, get_database
from ..sessions import SessionLifecycle
from ..settings import Settings
from ..stats import StatsAggregator
from ..users import UserDirectory


def get_settings(request: Request) -> Settings:
	return request.app.state.settings


def get_user_directory(request: Request) -> UserDirectory:
	return UserDirectory(get_database(request))


def get_lifecycle(request: Request) -> SessionLifecycle:
	settings: Settings = request.app.state.settings
	database: Database = get_database(request)
	return SessionLifecycle(database, clock=request.app.state.clock, timezone=settings.app_timezone)


def get_aggregator(request: Request) -> StatsAggregator:
	settings: Settings = request.app.state.settings
	return StatsAggregator(
		get_database(request),
		clock=request.app.state.clock,
		timezone=settings.app_timezone,
		progress_days=settings.progress_days,
	)

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .db import Database
from .errors import LingomateError
from .routers import auth, conversation, stats, users
from .schemas import error_response
from .sessions import Clock, utc_now
from .settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def create_app(
	settings: Optional[Settings] = None,
	*,
	database: Optional[Database] = None,
	clock: Clock = utc_now,
) -> FastAPI:
	settings = settings or default_settings
	database = database or Database(settings.database_url)

	@asynccontextmanager
	async def lifespan(app: FastAPI):
		# Store handle lives exactly as long as the process serves requests
		if settings.uses_default_secret:
			logger.warning("AUTH0_DOMAIN is unset and JWT_SECRET_KEY is the built-in default; set JWT_SECRET_KEY before exposing this service")
		database.open()
		logger.info("database opened url=%s", database.engine.url.render_as_string(hide_password=True))
		try:
			yield
		finally:
			database.close()
			logger.info("database closed")

	app = FastAPI(title="LingoMate API", lifespan=lifespan)
	app.state.settings = settings
	app.state.database = database
	app.state.clock = clock

	app.include_router(auth.router)
	app.include_router(users.router)
	app.include_router(conversation.router)
	app.include_router(stats.router)

	@app.exception_handler(LingomateError)
	async def handle_lingomate_error(request: Request, exc: LingomateError):
		if exc.status_code >= 500:
			logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
		return JSONResponse(status_code=exc.status_code, content=error_response(exc.code, exc.message))

	@app.exception_handler(RequestValidationError)
	async def handle_validation_error(request: Request, exc: RequestValidationError):
		errors = exc.errors()
		detail = "; ".join(
			f"{'.'.join(str(p) for p in e.get('loc', ()) if p != 'body')}: {e.get('msg')}" for e in errors
		) or "Invalid request"
		return JSONResponse(status_code=400, content=error_response("INVALID_ARGUMENT", detail))

	@app.get("/info")
	def root():
		return {"status": "ok", "auth0_configured": bool(settings.auth0_domain)}

	return app


app = create_app()


def main() -> None:
	logging.basicConfig(
		level=default_settings.log_level.upper(),
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
	)
	uvicorn.run(app, host=default_settings.host, port=default_settings.port, log_level=default_settings.log_level.lower())


if __name__ == "__main__":
	main()

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

DEFAULT_JWT_SECRET = "change-me"

class Settings(BaseSettings):
	# Database
	database_url: str = Field(default="sqlite:///./app.db", validation_alias="DATABASE_URL")

	# Auth0 (RS256 tokens verified against the tenant's JWKS)
	auth0_domain: str | None = Field(default=None, validation_alias="AUTH0_DOMAIN")
	auth0_audience: str | None = Field(default=None, validation_alias="AUTH0_AUDIENCE")
	jwks_cache_seconds: int = Field(default=3600, validation_alias="JWKS_CACHE_SECONDS")
	# Local development fallback when AUTH0_DOMAIN is unset
	jwt_secret_key: str = Field(default=DEFAULT_JWT_SECRET, validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")

	# Calendar days (streak, progress stamps, "today") are evaluated in this zone
	app_timezone: str = Field(default="UTC", validation_alias="APP_TIMEZONE")
	progress_days: int = Field(default=12, validation_alias="PROGRESS_DAYS")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
	host: str = Field(default="0.0.0.0", validation_alias="HOST")
	port: int = Field(default=3000, validation_alias="PORT")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

	@property
	def auth0_issuer(self) -> str | None:
		if not self.auth0_domain:
			return None
		return f"https://{self.auth0_domain.rstrip('/')}/"

	@property
	def uses_default_secret(self) -> bool:
		# Shared-secret tokens are only accepted when Auth0 is not configured
		return not self.auth0_domain and self.jwt_secret_key == DEFAULT_JWT_SECRET

settings = Settings()

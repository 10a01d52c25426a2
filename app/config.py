from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from dotenv import load_dotenv
load_dotenv()


class Settings(BaseSettings):
	# App
	APP_NAME: str = "Electricity Billing Dashboard"
	APP_VERSION: str = "1.0.0"
	API_V1_PREFIX: str = ""
	DEBUG: bool = False
	ENVIRONMENT: str = "development" # development, staging, production

	# Billing backend
	BACKEND_API_URL: str = "http://localhost:3001/api"
	BACKEND_TIMEOUT_SECONDS: float = 15.0

	# Session (signed cookie)
	SESSION_SECRET: str = "dev-session-secret-change-me"
	SESSION_COOKIE: str = "ebs_session"
	SESSION_MAX_AGE: int = 24 * 3600
	LOGIN_PATH: str = "/login"

	# Billing
	DEFAULT_KWH_RATE: float = 25.0
	CURRENCY: str = "KES"
	MAX_PHOTO_SIZE: int = 5 * 1024 * 1024  # 5MB
	BILLS_PAGE_SIZE: int = 20
	READINGS_PAGE_SIZE: int = 20

	# CORS
	CORS_ORIGINS: List[str] = ["http://localhost:3000"]
	ALLOWED_HOSTS: List[str] = ["*"]

	# Monitoring
	EXPOSE_METRICS: bool = True

	model_config = SettingsConfigDict(
		env_file=".env",
		env_file_encoding="utf-8",
		case_sensitive=True
	)


@lru_cache()
def get_settings() -> Settings:
	return Settings()


settings = get_settings()

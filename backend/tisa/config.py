"""Application settings and validation."""

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

DEFAULT_JWT_SECRET = "change_me_for_prod_tisa_signing_key"
BASE = Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class AuthData:
    """Token and password hashing parameters shared by the auth endpoints."""
    issuer: str
    audience: str
    signing_key: str
    expiration_time: timedelta
    iteration_count: int
    salt_size: int
    algorithm: str = "HS256"


class Settings:
    ENV: str
    DATABASE_URL: str
    JWT_SECRET: str
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    AUTH: AuthData
    PENDING_REGISTRATION_TTL: timedelta
    VERIFICATION_CODE_LENGTH: int
    EMAIL_BACKEND: str
    EMAIL_FROM: str
    SMTP_HOST: str
    SMTP_PORT: int
    SMTP_USERNAME: str
    SMTP_PASSWORD: str
    SMTP_USE_TLS: bool
    AUTH_RATE_LIMIT_PER_MIN: int
    AUTH_RATE_LIMIT_WINDOW_SECONDS: int

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'app.db'}")
        self.JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.AUTH = AuthData(
            issuer=os.getenv("JWT_ISSUER", "ProjectTisa"),
            audience=os.getenv("JWT_AUDIENCE", "ProjectTisaClients"),
            signing_key=self.JWT_SECRET,
            expiration_time=timedelta(minutes=int(os.getenv("JWT_EXPIRE_MINUTES", str(24 * 60)))),
            iteration_count=int(os.getenv("AUTH_ITERATION_COUNT", "100000")),
            salt_size=int(os.getenv("AUTH_SALT_SIZE", "16")),
        )
        self.PENDING_REGISTRATION_TTL = timedelta(minutes=int(os.getenv("PENDING_REGISTRATION_TTL_MINUTES", "15")))
        self.VERIFICATION_CODE_LENGTH = int(os.getenv("VERIFICATION_CODE_LENGTH", "6"))
        self.EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "console").lower()
        self.EMAIL_FROM = os.getenv("EMAIL_FROM", "no-reply@projecttisa.local")
        self.SMTP_HOST = os.getenv("SMTP_HOST", "")
        self.SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
        self.SMTP_USERNAME = os.getenv("SMTP_USERNAME", "")
        self.SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
        self.SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
        self.AUTH_RATE_LIMIT_PER_MIN = int(os.getenv("AUTH_RATE_LIMIT_PER_MIN", "30"))
        self.AUTH_RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("AUTH_RATE_LIMIT_WINDOW_SECONDS", "60"))
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == DEFAULT_JWT_SECRET:
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.AUTH.iteration_count < 1:
            raise RuntimeError("AUTH_ITERATION_COUNT must be a positive integer")
        if self.AUTH.salt_size < 8:
            raise RuntimeError("AUTH_SALT_SIZE must be at least 8 bytes")
        if self.VERIFICATION_CODE_LENGTH < 4:
            raise RuntimeError("VERIFICATION_CODE_LENGTH must be at least 4")
        if self.EMAIL_BACKEND not in ("console", "smtp"):
            raise RuntimeError(f"unknown EMAIL_BACKEND: {self.EMAIL_BACKEND}")
        if self.EMAIL_BACKEND == "smtp" and not self.SMTP_HOST:
            raise RuntimeError("SMTP_HOST is required when EMAIL_BACKEND=smtp")


settings = Settings()

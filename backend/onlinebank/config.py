"""Application settings and validation."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(override=False)

BASE = Path(__file__).resolve().parent.parent

DEFAULT_JWT_SECRET = "change_me_for_prod"
DEFAULT_CORS_ORIGINS = ",".join(
    f"{scheme}://localhost:{port}"
    for scheme in ("http", "https")
    for port in (3000, 3001, 5173)
)


class Settings:
    ENV: str
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_ISSUER: str
    JWT_AUDIENCE: str
    JWT_EXPIRE_HOURS: int
    LOG_DIR: str
    LOG_LEVEL: str
    CORS_ORIGINS: list
    SMTP_HOST: str
    SMTP_PORT: int
    SMTP_USER: str
    SMTP_PASSWORD: str
    MAIL_FROM: str
    SEED_ON_STARTUP: bool
    ALLOW_INSECURE_JWT: bool

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'onlinebank.db'}")
        self.JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_ISSUER = os.getenv("JWT_ISSUER", "OnlineBankAPI")
        self.JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "OnlineBankClient")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.LOG_DIR = os.getenv("LOG_DIR", str(BASE / "logs"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",") if o.strip()]
        self.SMTP_HOST = os.getenv("SMTP_HOST", "")
        self.SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
        self.SMTP_USER = os.getenv("SMTP_USER", "")
        self.SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
        self.MAIL_FROM = os.getenv("MAIL_FROM", "noreply@onlinebank.com")
        self.SEED_ON_STARTUP = os.getenv("SEED_ON_STARTUP", "true").lower() == "true"
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == DEFAULT_JWT_SECRET:
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.JWT_EXPIRE_HOURS <= 0:
            raise RuntimeError("JWT_EXPIRE_HOURS must be a positive number of hours")


settings = Settings()

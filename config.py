import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    # Server
    PORT = int(os.environ.get("PORT", 8000))
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    APP_VERSION = os.environ.get("APP_VERSION", "0.1.0")

    # Auth/JWT
    # Set JWT_SECRET in the environment for anything other than local development.
    JWT_SECRET = os.environ.get("JWT_SECRET", "dev-secret-change-me")
    JWT_ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS = int(os.environ.get("ACCESS_TOKEN_EXPIRE_DAYS", 7))

    # MongoDB
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_NAME = os.environ.get("DATABASE_NAME", "sehatpulse")

    # Reminder client
    API_URL = os.environ.get("API_URL", "http://localhost:8000")
    REMINDER_POLL_SECONDS = int(os.environ.get("REMINDER_POLL_SECONDS", 30))
    REMINDER_GRACE_MINUTES = int(os.environ.get("REMINDER_GRACE_MINUTES", 15))

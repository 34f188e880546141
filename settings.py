import os
import re

from dotenv import load_dotenv

load_dotenv()


def parse_duration(value: str) -> int:
    """Convert "7d" / "24h" / "30m" / "45s" / "3600" into seconds."""
    value = str(value).strip().lower()
    match = re.fullmatch(r"(\d+)\s*([dhms]?)", value)
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = int(match.group(1)), match.group(2)
    return amount * {"d": 86400, "h": 3600, "m": 60, "s": 1, "": 1}[unit]


PORT = int(os.getenv("PORT", 8000))
ENVIRONMENT = os.getenv("ENVIRONMENT", os.getenv("NODE_ENV", "development")).lower()
IS_PRODUCTION = ENVIRONMENT == "production"

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "teamforge")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = "HS256"
JWT_EXPIRE_SECONDS = parse_duration(os.getenv("JWT_EXPIRE", "7d"))

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

FRONTEND_URL = os.getenv("FRONTEND_URL")

RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", 900))
RATE_LIMIT_MAX = int(os.getenv("RATE_LIMIT_MAX", 100))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

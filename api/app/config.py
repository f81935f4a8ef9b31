import os

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/campus_match")
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

JWT_SECRET = os.getenv("JWT_SECRET", "")
ACCESS_TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", "15"))
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

MATCH_ACTIONS = ("like", "reject", "skip")
MESSAGE_TYPES = ("text", "image", "emoji")
MESSAGE_MAX_LENGTH = int(os.getenv("MESSAGE_MAX_LENGTH", "1000"))
MESSAGE_PAGE_SIZE = int(os.getenv("MESSAGE_PAGE_SIZE", "50"))
MESSAGE_PAGE_MAX = int(os.getenv("MESSAGE_PAGE_MAX", "100"))
TYPING_IDLE_SECONDS = float(os.getenv("TYPING_IDLE_SECONDS", "2.0"))

RL_MATCH_ACTION_LIMIT = int(os.getenv("RL_MATCH_ACTION_LIMIT", "100"))
RL_MESSAGE_SEND_LIMIT = int(os.getenv("RL_MESSAGE_SEND_LIMIT", "120"))
RL_SIGNAL_LIMIT = int(os.getenv("RL_SIGNAL_LIMIT", "600"))
RL_WINDOW_SECONDS = int(os.getenv("RL_WINDOW_SECONDS", "60"))

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
API_TIMEOUT_SECONDS = float(os.getenv("API_TIMEOUT_SECONDS", "10"))

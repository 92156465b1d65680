# backend/config.py

import os
from dotenv import load_dotenv

# Inside a container (Docker, Railway) the platform provides env vars; the
# repository `.env` must not override them.
if not os.path.exists("/.dockerenv"):
    load_dotenv()

APP_VERSION = os.getenv("APP_VERSION", "dev")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///local.db")

# JWT
SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-change-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "7"))

# Narrative generation (OpenAI-compatible chat completions)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
NARRATIVE_BASE_URL = os.getenv("NARRATIVE_BASE_URL", "https://api.openai.com/v1")
NARRATIVE_MODEL = os.getenv("NARRATIVE_MODEL", "gpt-4")
NARRATIVE_TIMEOUT = float(os.getenv("NARRATIVE_TIMEOUT", "60"))

# Campaign lifecycle
TURN_WINDOW_SECONDS = int(os.getenv("TURN_WINDOW_SECONDS", "60"))
STALLED_START_SECONDS = int(os.getenv("STALLED_START_SECONDS", "120"))
CODE_ATTEMPTS = int(os.getenv("CODE_ATTEMPTS", "10"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

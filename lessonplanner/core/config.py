import os
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env
load_dotenv()

# Live preview settings
DEBOUNCE_SECONDS = float(os.getenv("DEBOUNCE_SECONDS", "0.150"))  # quiet period before a form edit is committed

# Editing sessions with no request for this long are discarded
SESSION_IDLE_SECONDS = float(os.getenv("SESSION_IDLE_SECONDS", "3600"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# CORS settings (comma-separated)
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:8000,http://localhost:5173,http://localhost:3000,"
        "http://127.0.0.1:3000,http://127.0.0.1:5173",
    ).split(",")
    if o.strip()
]


class AIConfig(BaseSettings):
    """Generation backend settings, read from AI_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="AI_", case_sensitive=False)

    api_url: str = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
    api_key: str = ""  # the only credential the service needs
    model: str = "gemini-3-flash-preview"
    timeout: float = 120.0

    @property
    def endpoint(self) -> str:
        return self.api_url.format(model=self.model)


ai_config = AIConfig()

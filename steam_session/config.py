from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_env_file() -> str | None:
    cur = Path(__file__).resolve()
    for parent in [cur.parent, *cur.parents]:
        candidate = parent / ".env"
        if candidate.exists():
            return str(candidate)
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_env_file() or ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # identity gateway
    AUTH_BASE_URL: str = "http://localhost:8080"
    HTTP_TIMEOUT_SEC: float = 8.0

    # login session
    LOGIN_TIMEOUT_MS: int = 30000
    LOGIN_TTL_SEC: int = 600

    # cookie finalization
    FINALIZE_LOGIN_URL: str = "https://login.steampowered.com/jwt/finalizelogin"
    FINALIZE_REDIRECT_URL: str = "https://steamcommunity.com/login/home/?goto="
    SESSION_COOKIE_NAME: str = "steamLoginSecure"

    LOG_LEVEL: str = "INFO"


settings = Settings()

from enum import Enum
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent.parent


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LARDER_")

    env: Env = Env.local
    html_dir: Path = BASE_DIR / "assets" / "html"
    log_level: str = "INFO"
    db_url: str = "sqlite+aiosqlite:///larder.db"
    recipe_api_url: str | None = None
    recipe_api_token: str | None = None
    target_floor: int = 15
    min_results_before_broaden: int = 5
    broaden_timeout: float | None = None
    session_cookie: str = "larder_session"
    max_sessions: int = 1000

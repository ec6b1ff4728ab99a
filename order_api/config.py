"""Runtime configuration for the order core (read from env, toggleable during tests/runtime)."""
import os
from typing import NamedTuple


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings(NamedTuple):
    database_url: str
    db_echo: bool
    strict_stock: bool
    default_page_size: int
    max_page_size: int
    log_level: str
    log_json: bool


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./app.db"),
        db_echo=_env_flag("DB_ECHO", "0"),
        strict_stock=_env_flag("ORDER_STRICT_STOCK", "1"),
        default_page_size=int(os.getenv("ORDER_DEFAULT_PAGE_SIZE", "10")),
        max_page_size=int(os.getenv("ORDER_MAX_PAGE_SIZE", "100")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_json=_env_flag("LOG_JSON", "1"),
    )


state = load_settings()


def get_settings() -> Settings:
    return state


def reload_settings() -> Settings:
    global state
    state = load_settings()
    return state


def set_strict_stock(value: bool):
    # Strict: conditional decrement on pay, overselling is rejected.
    # Legacy: read-modify-write, stock may go negative.
    global state
    state = state._replace(strict_stock=bool(value))


def is_strict_stock() -> bool:
    return state.strict_stock

import os
from pathlib import Path
from dotenv import load_dotenv
from sqlalchemy.engine import URL, make_url

# Load environment variables from the .env file in the current directory
load_dotenv()

TOKEN = os.getenv("TOKEN") or os.getenv("BOT_TOKEN")
BASE_URL = os.getenv("BASE_URL")


def _resolve_sqlite_path(url: str | None) -> str | None:
    """Resolve relative SQLite URLs against the project root."""
    if not url:
        return url

    try:
        parsed = make_url(url)
    except Exception:
        return url

    if not parsed.drivername.startswith("sqlite"):
        return url

    database = parsed.database
    if not database or database == ":memory:":
        return url

    db_path = Path(database)
    if db_path.is_absolute():
        return url

    absolute_path = (Path(__file__).resolve().parent / db_path).resolve()
    updated = parsed.set(database=absolute_path.as_posix())
    return str(updated)


def _database_url_from_parts() -> str | None:
    """Build a URL from the discrete DB_* variables used by the website."""
    host = os.getenv("DB_HOST")
    database = os.getenv("DB_DATABASE")
    if not host or not database:
        return None
    port = os.getenv("DB_PORT")
    url = URL.create(
        drivername=os.getenv("DB_DRIVER", "mysql+aiomysql"),
        username=os.getenv("DB_USERNAME"),
        password=os.getenv("DB_PASSWORD"),
        host=host,
        port=int(port) if port else None,
        database=database,
    )
    return url.render_as_string(hide_password=False)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


DATABASE_URL = _resolve_sqlite_path(os.getenv("DATABASE_URL")) or _database_url_from_parts()
WEB_SERVER_HOST = os.getenv("WEB_SERVER_HOST")
WEB_SERVER_PORT = int(os.getenv("WEB_SERVER_PORT", "8080"))
MAIN_BOT_PATH = os.getenv("MAIN_BOT_PATH")

RUN_VIA_POLLING = _env_flag("RUN_VIA_POLLING", "true")
LOG_LANGUAGE = os.getenv("LOG_LANGUAGE", "en")

# Enforcement loop timings (seconds)
ENFORCEMENT_ENABLED = _env_flag("ENFORCEMENT_ENABLED", "true")
ENFORCEMENT_INTERVAL_SECONDS = float(os.getenv("ENFORCEMENT_INTERVAL_SECONDS", "300"))
ENFORCEMENT_SETTLE_SECONDS = float(os.getenv("ENFORCEMENT_SETTLE_SECONDS", "120"))
EXPIRY_NOTICE_DELAY_SECONDS = float(os.getenv("EXPIRY_NOTICE_DELAY_SECONDS", "5"))
EXPIRY_REMINDER_DAYS = int(os.getenv("EXPIRY_REMINDER_DAYS", "5"))
# Off by default: subscribers who never joined a group are re-evaluated every pass.
ENFORCEMENT_MARK_ABSENT = _env_flag("ENFORCEMENT_MARK_ABSENT", "false")

ONBOARDING_TIMEOUT_SECONDS = float(os.getenv("ONBOARDING_TIMEOUT_SECONDS", "600"))

if TOKEN is None:
    raise ValueError("TOKEN is not set in the .env file.")

if DATABASE_URL is None:
    raise ValueError("DATABASE_URL (or DB_HOST/DB_DATABASE) is not set in the .env file.")

if not RUN_VIA_POLLING:
    if BASE_URL is None or BASE_URL == "https://example.com":
        raise ValueError("BASE_URL is not set or is a placeholder in the .env file for webhook mode.")
    if WEB_SERVER_HOST is None:
        raise ValueError("WEB_SERVER_HOST is not set in the .env file for webhook mode.")
    if MAIN_BOT_PATH is None:
        raise ValueError("MAIN_BOT_PATH is not set in the .env file for webhook mode.")

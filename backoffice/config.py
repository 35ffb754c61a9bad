"""Environment driven settings for the back-office backend.

Values come from the process environment, optionally seeded from a ``.env``
file next to the working directory.  Only :func:`load_config` reads the
environment; everything else receives an :class:`AppConfig`.
"""
from __future__ import annotations

from dataclasses import dataclass
from os import getenv
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Existing environment variables win over the .env file.
load_dotenv()

STORE_BACKENDS = ("sqlite", "rest")


@dataclass(frozen=True)
class AppConfig:
    """Runtime settings resolved once at startup.

    Attributes:
        project_root: Repository root; the default SQLite file lives here.
        store_backend: ``"sqlite"`` for a local file or ``"rest"`` for a
            remote PostgREST-style collection.
        database_file: SQLite file used by the ``sqlite`` backend.
        store_url: Base URL of the remote store (``rest`` backend only).
        store_key: API key sent to the remote store, if any.
        expense_table: Name of the expense table or collection.
        page_size: Rows requested per page when reading expenses.
        request_timeout: Seconds before a remote store request gives up.
        log_level: Level name for the ``backoffice`` logger.
    """

    project_root: Path
    store_backend: str
    database_file: Path
    store_url: Optional[str]
    store_key: Optional[str]
    expense_table: str
    page_size: int
    request_timeout: float
    log_level: str


def load_config() -> AppConfig:
    """Build an :class:`AppConfig` from ``BACKOFFICE_*`` variables.

    Raises:
        ValueError: when a numeric setting cannot be parsed, the backend name
            is unknown, or the ``rest`` backend is selected without a URL.
    """

    project_root = Path(__file__).resolve().parent.parent
    store_backend = (getenv_with_default("BACKOFFICE_STORE_BACKEND", "sqlite") or "sqlite").lower()
    if store_backend not in STORE_BACKENDS:
        raise ValueError(f"Unknown store backend {store_backend!r}; expected one of {STORE_BACKENDS}")

    database_file = Path(getenv_with_default("BACKOFFICE_DB_FILE", project_root / "backoffice.db"))
    store_url = getenv_with_default("BACKOFFICE_STORE_URL")
    if store_backend == "rest" and not store_url:
        raise ValueError("BACKOFFICE_STORE_URL is required when BACKOFFICE_STORE_BACKEND=rest")

    page_size = int(getenv_with_default("BACKOFFICE_PAGE_SIZE", "1000"))
    if page_size < 1:
        raise ValueError("BACKOFFICE_PAGE_SIZE must be a positive integer")

    if store_backend == "sqlite":
        database_file.parent.mkdir(parents=True, exist_ok=True)

    return AppConfig(
        project_root=project_root,
        store_backend=store_backend,
        database_file=database_file,
        store_url=store_url,
        store_key=getenv_with_default("BACKOFFICE_STORE_KEY"),
        expense_table=getenv_with_default("BACKOFFICE_EXPENSE_TABLE", "despesas"),
        page_size=page_size,
        request_timeout=float(getenv_with_default("BACKOFFICE_REQUEST_TIMEOUT", "30")),
        log_level=getenv_with_default("BACKOFFICE_LOG_LEVEL", "INFO"),
    )


def getenv_with_default(name: str, default: Optional[Path | str] = None) -> Optional[str]:
    """Read ``name`` from the environment, falling back to ``default``.

    A missing variable without a default gives ``None``; path defaults are
    returned as strings.
    """

    value = getenv(name)
    if value is not None:
        return value
    if default is None:
        return None
    return str(default)

"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import Generator, Optional

from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import session_scope
from ..notifications import Notifier, get_notifier


def get_db() -> Generator[Session, None, None]:
    """Provide one transactional session per request."""

    with session_scope() as session:
        yield session


def pagination_params(limit: Optional[int] = None, offset: int = 0) -> tuple[int, int]:
    settings = get_settings()
    if limit is None:
        limit = settings.default_page_size
    elif limit > settings.max_page_size:
        limit = settings.max_page_size
    return limit, offset


def notifier_dependency() -> Notifier:
    return get_notifier()

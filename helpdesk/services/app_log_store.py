from __future__ import annotations

import structlog

from helpdesk.models import AppLog
from helpdesk.repositories import AppLogStore
from helpdesk.utils.time import utc_now

logger = structlog.get_logger(__name__)


async def log_event(
    store: AppLogStore,
    level: str,
    event_type: str,
    message: str | None = None,
    data: dict | None = None,
) -> AppLog | None:
    log = AppLog(
        level=level,
        event_type=event_type,
        message=message,
        data=data,
        created_at=utc_now(),
    )
    try:
        return await store.add(log)
    except Exception as exc:
        logger.warning("app_log_write_failed", event_type=event_type, error=str(exc))
        return None

"""Periodic URL health checks for containers.

Meant to be run by an external scheduler (cron, a worker). It only ever writes
``url_status``, ``url_last_checked`` and ``url_check_error``; visibility and
entitlement fields are never touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import httpx
from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from marketplace.models.container import Container
from marketplace.models.enums import UrlStatus

logger = logging.getLogger(__name__)

DEFAULT_RECHECK_INTERVAL = timedelta(hours=24)
DEFAULT_TIMEOUT = 10.0
_PLACEHOLDER_URLS = ("", "-")


@dataclass(frozen=True)
class UrlCheckResult:
    status: UrlStatus
    error: Optional[str] = None


def classify_status_code(status_code: int) -> UrlCheckResult:
    if status_code < 400:
        return UrlCheckResult(UrlStatus.ACTIVE)
    if status_code in (401, 403):
        return UrlCheckResult(UrlStatus.AUTH_REQUIRED, f"HTTP {status_code}")
    if status_code in (429, 451):
        return UrlCheckResult(UrlStatus.BLOCKED, f"HTTP {status_code}")
    return UrlCheckResult(UrlStatus.BROKEN, f"HTTP {status_code}")


async def probe_url(client: httpx.AsyncClient, url: str) -> UrlCheckResult:
    try:
        response = await client.get(url, follow_redirects=True)
    except httpx.TimeoutException as exc:
        return UrlCheckResult(UrlStatus.TIMEOUT, str(exc) or "timed out")
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        return UrlCheckResult(UrlStatus.BROKEN, str(exc) or exc.__class__.__name__)
    return classify_status_code(response.status_code)


def select_due_containers(db: Session, older_than: datetime) -> List[Container]:
    """Containers with a real URL that were never checked or not since ``older_than``."""
    return (
        db.query(Container)
        .filter(
            Container.url.isnot(None),
            Container.url.notin_(_PLACEHOLDER_URLS),
            or_(Container.url_last_checked.is_(None), Container.url_last_checked < older_than),
        )
        .order_by(Container.updated_at.asc())
        .all()
    )


def record_result(db: Session, container_id, result: UrlCheckResult, checked_at: datetime) -> None:
    db.execute(
        update(Container)
        .where(Container.id == container_id)
        .values(
            url_status=result.status.value,
            url_last_checked=checked_at,
            url_check_error=result.error,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()


async def run_health_check(
    db: Session,
    client: httpx.AsyncClient,
    *,
    recheck_interval: timedelta = DEFAULT_RECHECK_INTERVAL,
    now: Optional[datetime] = None,
) -> int:
    """Probe every due container once and return how many were checked."""
    now = now or datetime.now(timezone.utc)
    due = [(container.id, container.url) for container in select_due_containers(db, now - recheck_interval)]
    logger.info("URL health check: %s containers due", len(due))

    for container_id, url in due:
        result = await probe_url(client, url)
        record_result(db, container_id, result, now)
        if result.status != UrlStatus.ACTIVE:
            logger.warning("Container %s url=%s status=%s error=%s", container_id, url, result.status.value, result.error)

    return len(due)


async def main() -> None:  # pragma: no cover
    """Entry point for ``python -m marketplace.services.url_health``."""
    from marketplace.core.database import SessionLocal

    db = SessionLocal()
    try:
        async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
            await run_health_check(db, client)
    finally:
        db.close()


if __name__ == "__main__":  # pragma: no cover
    import asyncio

    asyncio.run(main())

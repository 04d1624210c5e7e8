from datetime import datetime, timedelta, timezone

import httpx
import pytest

from conftest import add_container
from marketplace.models import Container
from marketplace.models.enums import UrlStatus
from marketplace.services import url_health


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.parametrize(
    "status_code,expected",
    [
        (200, UrlStatus.ACTIVE),
        (301, UrlStatus.ACTIVE),
        (401, UrlStatus.AUTH_REQUIRED),
        (403, UrlStatus.AUTH_REQUIRED),
        (429, UrlStatus.BLOCKED),
        (451, UrlStatus.BLOCKED),
        (404, UrlStatus.BROKEN),
        (503, UrlStatus.BROKEN),
    ],
)
def test_classify_status_code(status_code, expected):
    result = url_health.classify_status_code(status_code)
    assert result.status == expected
    if expected == UrlStatus.ACTIVE:
        assert result.error is None
    else:
        assert result.error == f"HTTP {status_code}"


@pytest.mark.asyncio
async def test_probe_url_maps_timeouts_and_transport_errors():
    def timeout(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    def refused(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(timeout) as client:
        result = await url_health.probe_url(client, "https://slow.example.com")
    assert result.status == UrlStatus.TIMEOUT

    async with _client(refused) as client:
        result = await url_health.probe_url(client, "https://down.example.com")
    assert result.status == UrlStatus.BROKEN
    assert "connection refused" in result.error


def test_select_due_containers_skips_placeholders_and_fresh_checks(db):
    now = datetime.now(timezone.utc)
    due_never = add_container(db, title="Never", url="https://never.example.com")
    due_stale = add_container(
        db,
        title="Stale",
        url="https://stale.example.com",
        url_last_checked=now - timedelta(days=2),
    )
    add_container(db, title="Fresh", url="https://fresh.example.com", url_last_checked=now - timedelta(hours=1))
    add_container(db, title="Dash", url="-")
    add_container(db, title="Empty", url="")
    add_container(db, title="Missing", url=None)

    due = url_health.select_due_containers(db, now - timedelta(days=1))

    assert {container.id for container in due} == {due_never.id, due_stale.id}


@pytest.mark.asyncio
async def test_run_health_check_writes_only_health_fields(db):
    ok = add_container(db, title="Up", url="https://up.example.com", visibility="restricted", views=4)
    gone = add_container(db, title="Gone", url="https://gone.example.com")
    checked_at = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def handler(request):
        if request.url.host == "up.example.com":
            return httpx.Response(200)
        return httpx.Response(404)

    async with _client(handler) as client:
        checked = await url_health.run_health_check(db, client, now=checked_at)

    assert checked == 2
    db.expire_all()
    up = db.get(Container, ok.id)
    assert up.url_status == UrlStatus.ACTIVE.value
    assert up.url_check_error is None
    assert up.url_last_checked is not None
    assert up.visibility == "restricted"
    assert up.views == 4

    broken = db.get(Container, gone.id)
    assert broken.url_status == UrlStatus.BROKEN.value
    assert broken.url_check_error == "HTTP 404"

    async with _client(handler) as client:
        assert await url_health.run_health_check(db, client, now=checked_at) == 0

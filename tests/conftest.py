import pytest
import httpx
from app.main import app
from app.db import db
from app.client.portal import PortalClient
from app.services.limiter import login_limiter, entry_code_limiter


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def fresh_backend():
    """Every test starts from the seeded in-memory database."""
    db.reset()
    login_limiter.reset()
    entry_code_limiter.reset()
    yield
    db.reset()


@pytest.fixture
async def portal():
    """A client wired straight into the reference backend, no sockets involved."""
    client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
    async with PortalClient(client=client) as p:
        yield p


@pytest.fixture
async def guard_portal(portal):
    await portal.login("guard@hostel.test", "securepass")
    return portal

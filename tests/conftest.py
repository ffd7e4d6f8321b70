import asyncio
from typing import Optional

import httpx
import pytest
import pytest_asyncio

from fake_api import FakeBackend, build_app
from lookbook.auth import ViewerSession
from lookbook.cache import EntityCache
from lookbook.clients.interaction_api import InteractionApiClient
from lookbook.config import Settings
from lookbook.errors import GatewayError, GatewayServerError
from lookbook.interactions.engine import OptimisticEngine
from lookbook.notifications import Notifier

VIEWER = "viewer-1"


class FakeGateway:
    """Records every call; outcomes are scripted per method name.

    fail_on(name)     → every call to `name` raises
    gate(name, error) → the next call to `name` blocks until the returned
                        event is set, then raises `error` if given
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self._failures: dict[str, GatewayError] = {}
        self._gates: dict[str, list[tuple[asyncio.Event, Optional[GatewayError]]]] = {}

    def fail_on(self, name: str, error: Optional[GatewayError] = None) -> None:
        self._failures[name] = error or GatewayServerError("boom", 500)

    def gate(self, name: str, error: Optional[GatewayError] = None) -> asyncio.Event:
        event = asyncio.Event()
        self._gates.setdefault(name, []).append((event, error))
        return event

    async def _call(self, name: str, target_id: str) -> None:
        self.calls.append((name, target_id))
        gates = self._gates.get(name)
        if gates:
            event, error = gates.pop(0)
            await event.wait()
            if error is not None:
                raise error
            return
        if name in self._failures:
            raise self._failures[name]

    async def like_post(self, post_id: str) -> None:
        await self._call("like_post", post_id)

    async def unlike_post(self, post_id: str) -> None:
        await self._call("unlike_post", post_id)

    async def save_post(self, post_id: str) -> None:
        await self._call("save_post", post_id)

    async def unsave_post(self, post_id: str) -> None:
        await self._call("unsave_post", post_id)

    async def follow_user(self, user_id: str) -> None:
        await self._call("follow_user", user_id)

    async def unfollow_user(self, user_id: str) -> None:
        await self._call("unfollow_user", user_id)


@pytest.fixture
def config() -> Settings:
    return Settings(tracing_enabled=False, api_base_url="http://testserver/api")


@pytest.fixture
def session() -> ViewerSession:
    return ViewerSession(user_id=VIEWER, token=VIEWER)


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def notices(notifier: Notifier) -> list[str]:
    received: list[str] = []
    notifier.subscribe(lambda n: received.append(n.message))
    return received


@pytest.fixture
def cache() -> EntityCache:
    return EntityCache(stale_time=60.0)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def engine(cache, gateway, session, notifier) -> OptimisticEngine:
    return OptimisticEngine(cache, gateway, session, notifier)


@pytest.fixture
def backend() -> FakeBackend:
    backend = FakeBackend()
    backend.add_user(VIEWER)
    backend.add_user("artist", username="glam.artist")
    backend.add_post("p1", "artist", title="smoky eye")
    backend.add_post("p2", "artist", title="glass skin")
    return backend


@pytest.fixture
def transport(backend: FakeBackend) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=build_app(backend))


@pytest_asyncio.fixture
async def api(session, config, transport):
    client = InteractionApiClient(session, config=config, transport=transport)
    await client.start()
    yield client
    await client.stop()

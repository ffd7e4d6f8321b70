"""
Interactions runtime — wiring and lifecycle.

Startup sequence:
  1. Configure logging
  2. Configure OTel tracing (→ Jaeger via OTLP), if enabled
  3. Start the remote API client (httpx)
  4. Build the entity cache and register the authoritative loaders
  5. Build the engine and the Interactions facade

Shutdown waits for in-flight refetches, then closes the HTTP client.
The cache is owned by the runtime and passed explicitly; nothing here is
a module-level singleton.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx

from lookbook.auth import ViewerSession
from lookbook.cache import EntityCache
from lookbook.clients.interaction_api import InteractionApiClient
from lookbook.config import Settings, settings as default_settings
from lookbook.interactions.coordinator import Interactions
from lookbook.interactions.engine import OptimisticEngine
from lookbook.notifications import Notifier
from lookbook.schemas import PostKey, PostListKey, UserProfileKey
from lookbook.telemetry import configure_logging, setup_tracing

logger = logging.getLogger(__name__)


@dataclass
class InteractionsRuntime:
    interactions: Interactions
    cache: EntityCache
    api: InteractionApiClient
    notifier: Notifier
    session: ViewerSession


def register_fetchers(cache: EntityCache, api: InteractionApiClient) -> None:
    """Bind each cache key type to the endpoint that returns its authoritative value."""
    cache.register_fetcher(PostKey, lambda key: api.get_post(key.post_id))
    cache.register_fetcher(PostListKey, lambda key: api.get_posts(key.query))
    cache.register_fetcher(UserProfileKey, lambda key: api.get_user_profile(key.user_id))


async def create_interactions(
    session: ViewerSession,
    config: Optional[Settings] = None,
    notifier: Optional[Notifier] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> InteractionsRuntime:
    config = config or default_settings
    configure_logging(config.log_level)
    logger.info("Starting interactions runtime (env=%s)", config.environment)

    if config.tracing_enabled:
        setup_tracing(config)

    api = InteractionApiClient(session, config=config, transport=transport)
    await api.start()

    cache = EntityCache(stale_time=config.cache_stale_time_seconds)
    register_fetchers(cache, api)

    notifier = notifier or Notifier()
    engine = OptimisticEngine(cache, api, session, notifier)

    logger.info("Interactions ready → %s", config.api_base_url)
    return InteractionsRuntime(
        interactions=Interactions(engine),
        cache=cache,
        api=api,
        notifier=notifier,
        session=session,
    )


async def shutdown_interactions(runtime: InteractionsRuntime) -> None:
    logger.info("Shutting down interactions runtime...")
    await runtime.cache.drain()
    await runtime.api.stop()


@asynccontextmanager
async def interactions_lifespan(
    session: ViewerSession,
    config: Optional[Settings] = None,
    notifier: Optional[Notifier] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[InteractionsRuntime]:
    """Manage startup and shutdown of the runtime around a block."""
    runtime = await create_interactions(session, config, notifier, transport)
    try:
        yield runtime
    finally:
        await shutdown_interactions(runtime)

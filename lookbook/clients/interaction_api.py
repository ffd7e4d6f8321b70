"""
Remote API client — the mutation gateway and the authoritative loaders.

Mutations (one call per intent, idempotent on the server side):
  POST   /posts/{id}/like     DELETE /posts/{id}/like
  POST   /posts/{id}/save     DELETE /posts/{id}/save
  POST   /users/{id}/follow   DELETE /users/{id}/follow

Loaders (used as cache fetchers to pull authoritative state after a toggle):
  GET /posts/{id}             → PostView
  GET /posts?userId&page&...  → PostPage
  GET /users/{id}             → UserProfileView

Any failure is raised as a GatewayError subtype. No retries and no
timeout handling beyond httpx's own timeout: that is the caller's policy.
"""
import logging
from typing import Any, Optional

import httpx

from lookbook.auth import ViewerSession
from lookbook.config import Settings, settings as default_settings
from lookbook.errors import (
    GatewayAuthorizationError,
    GatewayError,
    GatewayNetworkError,
    GatewayNotFoundError,
    GatewayServerError,
)
from lookbook.schemas import PostListQuery, PostPage, PostView, UserProfileView

logger = logging.getLogger(__name__)


def _error_from_response(resp: httpx.Response) -> GatewayError:
    """Map a non-2xx response to a typed error, preferring the body's `error` text."""
    status = resp.status_code
    message = None
    try:
        body = resp.json()
        if isinstance(body, dict):
            message = body.get("error")
    except ValueError:
        logger.debug("Non-JSON error body (status=%s)", status)
    message = message or f"Request failed with status {status}"

    if status in (401, 403):
        return GatewayAuthorizationError(message, status)
    if status == 404:
        return GatewayNotFoundError(message, status)
    return GatewayServerError(message, status)


class InteractionApiClient:
    def __init__(
        self,
        session: ViewerSession,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._session = session
        self._config = config or default_settings
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        self._http = httpx.AsyncClient(
            base_url=self._config.api_base_url,
            timeout=self._config.api_timeout,
            transport=self._transport,
        )

    async def stop(self) -> None:
        if self._http:
            await self._http.aclose()
            self._http = None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("InteractionApiClient not started — call start() first")
        return self._http

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, str]] = None,
    ) -> Any:
        try:
            resp = await self._client().request(
                method, path, params=params, headers=self._session.auth_headers()
            )
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise GatewayNetworkError(str(exc) or exc.__class__.__name__) from exc

        if resp.is_error:
            err = _error_from_response(resp)
            logger.warning("%s %s → %s: %s", method, path, err.status, err.message)
            raise err

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None

    # ───────────────────────── Mutations ──────────────────────────────────

    async def like_post(self, post_id: str) -> None:
        await self._request("POST", f"/posts/{post_id}/like")

    async def unlike_post(self, post_id: str) -> None:
        await self._request("DELETE", f"/posts/{post_id}/like")

    async def save_post(self, post_id: str) -> None:
        await self._request("POST", f"/posts/{post_id}/save")

    async def unsave_post(self, post_id: str) -> None:
        await self._request("DELETE", f"/posts/{post_id}/save")

    async def follow_user(self, user_id: str) -> None:
        await self._request("POST", f"/users/{user_id}/follow")

    async def unfollow_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/users/{user_id}/follow")

    # ───────────────────────── Loaders ────────────────────────────────────

    async def get_post(self, post_id: str) -> PostView:
        data = await self._request("GET", f"/posts/{post_id}")
        return PostView.model_validate(data)

    async def get_posts(self, query: PostListQuery) -> PostPage:
        data = await self._request("GET", "/posts", params=query.as_params())
        return PostPage.model_validate(data)

    async def get_user_profile(self, user_id: str) -> UserProfileView:
        data = await self._request("GET", f"/users/{user_id}")
        return UserProfileView.model_validate(data)

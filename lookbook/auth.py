"""
Viewer session, the authentication collaborator.

Holds the identity of the signed-in viewer (as issued by the identity
provider) and an optional bearer token for the remote API. Toggles are
only valid for an authenticated viewer; the engine checks get_user_id()
before it touches the cache.
"""
import logging
from typing import Optional

from lookbook.errors import NotAuthenticatedError

logger = logging.getLogger(__name__)


class ViewerSession:
    def __init__(self, user_id: Optional[str] = None, token: Optional[str] = None) -> None:
        self._user_id = user_id
        self._token = token

    def sign_in(self, user_id: str, token: Optional[str] = None) -> None:
        self._user_id = user_id
        self._token = token
        logger.info("Viewer signed in: %s", user_id)

    def sign_out(self) -> None:
        logger.info("Viewer signed out: %s", self._user_id)
        self._user_id = None
        self._token = None

    def get_user_id(self) -> Optional[str]:
        return self._user_id

    def require_auth(self) -> str:
        if self._user_id is None:
            raise NotAuthenticatedError()
        return self._user_id

    def has_access_to_resource(self, owner_id: str) -> bool:
        """True when the viewer owns the resource (their own post or profile)."""
        return self._user_id is not None and self._user_id == owner_id

    def auth_headers(self) -> dict[str, str]:
        if self._token:
            return {"Authorization": f"Bearer {self._token}"}
        return {}

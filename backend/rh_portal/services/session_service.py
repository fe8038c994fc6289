import logging

from pydantic import ValidationError

from rh_portal.schemas.session import Capabilities, CurrentUser
from rh_portal.services.backend_client import BackendClient, BackendError

logger = logging.getLogger(__name__)

# Checked in this order when no Authorization header is sent.
TOKEN_COOKIES = ("userToken", "token", "auth", "jwt")
CSRF_COOKIE = "XSRF-TOKEN"
CSRF_HEADER = "X-CSRF-TOKEN"

ADMIN_CAPABILITIES = Capabilities(can_change_status=True, can_delete_others=True, can_view_all_owners=True)
SELF_SERVICE_CAPABILITIES = Capabilities()


class SessionExpired(Exception):
    """The backend rejected the caller's credentials; the session must end."""

    message = "Session expired. Please log in again."


def resolve_token(authorization: str | None, cookies: dict[str, str]) -> str | None:
    """Bearer credential from the Authorization header, falling back to the token cookies."""
    raw = authorization.strip() if authorization else None
    if not raw:
        raw = next((cookies[name] for name in TOKEN_COOKIES if cookies.get(name)), None)
    if not raw:
        return None
    return raw[7:].strip() if raw.startswith("Bearer ") else raw


def relay_headers(token: str | None, csrf_token: str | None) -> dict[str, str]:
    headers = {}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    if csrf_token:
        headers[CSRF_HEADER] = csrf_token
    return headers


def capabilities_for(user: CurrentUser | None) -> Capabilities:
    if user is not None and user.is_admin:
        return ADMIN_CAPABILITIES
    return SELF_SERVICE_CAPABILITIES


class SessionContext:
    """Credentials of the caller for one request, with a lazily loaded user."""

    def __init__(self, token: str | None, csrf_token: str | None = None, backend: BackendClient | None = None):
        self._token = token
        self.csrf_token = csrf_token
        self._backend = backend
        self._user: CurrentUser | None = None
        self._invalidated = False

    @classmethod
    def from_request(cls, authorization: str | None, cookies: dict[str, str], backend: BackendClient | None = None):
        return cls(resolve_token(authorization, cookies), cookies.get(CSRF_COOKIE), backend)

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    @property
    def invalidated(self) -> bool:
        return self._invalidated

    def get_token(self) -> str | None:
        return self._token

    def auth_headers(self) -> dict[str, str]:
        return relay_headers(self._token, self.csrf_token)

    async def get_current_user(self) -> CurrentUser | None:
        if self._token is None:
            return None
        if self._user is None and self._backend is not None:
            data = await self._backend.current_user(headers=self.auth_headers())
            try:
                self._user = CurrentUser.model_validate(data)
            except ValidationError as exc:
                logger.warning("Unreadable current user payload: %s", exc)
                raise BackendError("Invalid current user payload from backend", 502)
        return self._user

    async def capabilities(self) -> Capabilities:
        return capabilities_for(await self.get_current_user())

    def logout(self):
        if self._token is not None:
            logger.info("Session invalidated")
        self._token = None
        self.csrf_token = None
        self._user = None
        self._invalidated = True

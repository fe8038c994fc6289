import httpx
from fastapi import Depends, Header, HTTPException, Request

from rh_portal.config import settings
from rh_portal.schemas.session import CurrentUser
from rh_portal.services.backend_client import BackendClient, BackendError
from rh_portal.services.session_service import SessionContext, SessionExpired


async def get_backend():
    async with httpx.AsyncClient(base_url=settings.backend_base_url) as http:
        yield BackendClient(http)


async def get_session(
    request: Request,
    authorization: str | None = Header(None),
    backend: BackendClient = Depends(get_backend),
) -> SessionContext:
    return SessionContext.from_request(authorization, request.cookies, backend)


async def require_user(session: SessionContext = Depends(get_session)) -> CurrentUser:
    if not session.is_authenticated:
        raise HTTPException(status_code=401, detail="Missing credentials")
    try:
        user = await session.get_current_user()
    except BackendError as exc:
        if exc.status_code == 401:
            session.logout()
            raise SessionExpired()
        raise HTTPException(status_code=exc.status_code or 502, detail=str(exc))
    except httpx.HTTPError as exc:
        raise HTTPException(status_code=502, detail=f"Backend unreachable: {exc}")
    if user is None:
        raise HTTPException(status_code=401, detail="Missing credentials")
    return user

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rh_portal.config import settings
from rh_portal.routers import documents, upload
from rh_portal.services.session_service import TOKEN_COOKIES, SessionExpired

logger = logging.getLogger("rh_portal")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Relaying documents to backend at %s", settings.backend_base_url)
    yield


app = FastAPI(
    title="RH Portal",
    description="Same-origin proxy and document views for the HR backend",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SessionExpired)
async def session_expired_handler(request: Request, exc: SessionExpired):
    response = JSONResponse({"detail": exc.message}, status_code=401)
    for name in TOKEN_COOKIES:
        if name in request.cookies:
            response.delete_cookie(name)
    return response


app.include_router(upload.router, prefix=settings.api_prefix)
app.include_router(documents.router, prefix=settings.api_prefix)


@app.get("/health")
async def health():
    return {"status": "ok", "version": "0.1.0", "backend": settings.backend_base_url}

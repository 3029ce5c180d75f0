"""
Anemone agent FastAPI application factory.

Provides the REST surface of the agent:
- /health: service health status
- /chat: send a message and wait for the orchestrated reply
- /chat/history: recent conversation
- /wallet, /profile, /profile/init, /role: agent identity and on-chain role
- /events: recent orchestration events
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from anemone import __version__
from anemone.config.settings import Settings, get_settings
from anemone.di_container import AgentContainer
from anemone.enhanced_logging import configure_logging
from anemone.exceptions_unified import AnemoneException, create_error_context

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(min_length=1)
    user_id: str = Field(default="default", alias="userId", min_length=1)
    role_id: Optional[str] = Field(default=None, alias="roleId")
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    api_url: Optional[str] = Field(default=None, alias="apiUrl")


class InitProfileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role_id: str = Field(alias="roleId", min_length=1)
    package_id: str = Field(alias="packageId", min_length=1)


def _ok(data: Any = None, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "data": data}
    body.update(extra)
    return body


def _container(request: Request) -> AgentContainer:
    return request.app.state.container


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[AgentContainer] = None,
) -> FastAPI:
    if container is None:
        settings = settings or get_settings()
        configure_logging(settings)
        settings.ensure_directories()
        container = AgentContainer(settings)
    settings = container.settings

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        logger.info("Anemone agent starting up")
        container.start()
        yield
        await container.shutdown()
        logger.info("Anemone agent shutting down")

    app = FastAPI(
        title="Anemone Agent",
        version=__version__,
        description="Chat-driven Sui agent orchestration",
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[] if settings.is_production else ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AnemoneException)
    async def anemone_error(request: Request, exc: AnemoneException):
        log = logger.warning if exc.http_status < 500 else logger.error
        log("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.http_status,
            content={"success": False, "error": exc.user_message},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid request", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        context = create_error_context(exc)
        logger.exception(
            "Unhandled error %s on %s %s", context.error_id, request.method, request.url.path
        )
        return JSONResponse(
            status_code=context.http_status,
            content={"success": False, "error": context.user_message, "errorId": context.error_id},
        )

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------

    @app.get("/health")
    async def health(request: Request):
        return {
            "status": "healthy",
            "version": __version__,
            "services": _container(request).status(),
        }

    @app.post("/chat")
    async def chat(req: ChatRequest, request: Request):
        result = await _container(request).coordinator.process_chat(
            req.message,
            req.user_id,
            role_id=req.role_id,
            api_key=req.api_key,
            api_url=req.api_url,
        )
        return _ok(result)

    @app.get("/chat/history")
    async def chat_history(
        request: Request,
        user_id: str = Query(default="default", alias="userId"),
        limit: int = Query(default=20, ge=1, le=200),
        before: Optional[str] = Query(default=None),
    ):
        return _ok(_container(request).coordinator.get_chat_history(user_id, limit, before))

    @app.get("/wallet")
    async def wallet(request: Request):
        return _ok(_container(request).coordinator.get_wallet())

    @app.post("/profile/init")
    async def init_profile(req: InitProfileRequest, request: Request):
        return _ok(_container(request).coordinator.init_profile(req.role_id, req.package_id))

    @app.get("/profile")
    async def profile(request: Request):
        return _ok(_container(request).coordinator.get_profile())

    @app.get("/role")
    async def role(request: Request):
        return _ok(await _container(request).coordinator.get_role_on_chain_data())

    @app.get("/events")
    async def events(
        request: Request,
        limit: int = Query(default=100, ge=1, le=1000),
        hours: float = Query(default=1.0, gt=0),
    ):
        event_log = _container(request).event_log
        return _ok(event_log.get_recent(limit), summary=event_log.get_summary(hours))

    return app

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from eiga.api.deps import InvalidPayload
from eiga.api.responses import error_response, json_error, wants_json
from eiga.api.routes.admin import router as admin_router
from eiga.api.routes.auth import router as auth_router
from eiga.api.routes.discussions import router as discussions_router
from eiga.api.routes.reactions import router as reactions_router
from eiga.core.config import Settings, settings as default_settings
from eiga.core.database import init_db, make_engine, make_session_factory
from eiga.core.errors import CoreError, ErrorKind
from eiga.core.logging_config import setup_logging
from eiga.realtime.fanout import RealtimeFanout, ThreadNotifier, Transport
from eiga.realtime.sse import TopicHub, router as sse_router
from eiga.services.mailer import LogMailer, Mailer

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    engine: Engine | None = None,
    mailer: Mailer | None = None,
    transport: Transport | None = None,
) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings.LOG_LEVEL)

    engine = engine or make_engine(settings.DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(engine)
        logger.info("eiga started (realtime %s)", "on" if app.state.fanout.enabled else "off")
        yield
        engine.dispose()

    app = FastAPI(title="Eiga API", version="0.1.0", lifespan=lifespan)

    hub = TopicHub()
    if transport is None and settings.REALTIME_ENABLED:
        transport = hub
    fanout = RealtimeFanout(transport, join_timeout=settings.REALTIME_JOIN_TIMEOUT_SECONDS)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.topic_hub = hub
    app.state.fanout = fanout
    app.state.notifier = ThreadNotifier(fanout)
    app.state.mailer = mailer or LogMailer()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    @app.exception_handler(CoreError)
    async def core_error_handler(request: Request, exc: CoreError):
        if isinstance(exc, InvalidPayload) and wants_json(request):
            return json_error(exc.kind, issues=exc.issues)
        return error_response(request, exc)

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("store error on %s %s", request.method, request.url.path)
        return json_error(ErrorKind.SERVER)

    app.include_router(auth_router)
    app.include_router(discussions_router)
    app.include_router(reactions_router)
    app.include_router(admin_router)
    app.include_router(sse_router)

    @app.get("/health")
    def health():
        return {"ok": True}

    return app


app = create_app()

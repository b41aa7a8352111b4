import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .database import init_db
from .llm_client import RemixClient, RemixConfigError
from .routers.api import router as api_router
from .routes import router
from .services.store import ContentStore
from .services.workflow import (
    EmptyInputError,
    RemixWorkflow,
    UnknownVariantError,
    WorkflowBusyError,
    WorkflowStore,
)
from .settings import Settings

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    client: Optional[RemixClient] = None,
    store: Optional[ContentStore] = None,
) -> FastAPI:
    """Build the app around one settings object shared by the LLM client and the store."""
    settings = settings or Settings()
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    app = FastAPI(title="Content Remixer")
    app.state.settings = settings
    app.state.remix_client = client or RemixClient(settings)
    app.state.store = store or ContentStore.from_settings(settings)

    def _new_workflow() -> RemixWorkflow:
        return RemixWorkflow(
            app.state.remix_client,
            app.state.store,
            default_styles=settings.REMIX_STYLES,
            share_base_url=settings.SHARE_BASE_URL,
        )

    app.state.workflows = WorkflowStore(_new_workflow)

    # Enable CORS if needed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Update for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ----------------------
    # Session cookie -> workflow
    # ----------------------
    @app.middleware("http")
    async def _session_cookie(request: Request, call_next):
        cookie_name = settings.SESSION_COOKIE
        session_id = request.cookies.get(cookie_name)
        is_new = not session_id
        if is_new:
            session_id = WorkflowStore.new_session_id()
        request.state.session_id = session_id
        response = await call_next(request)
        if is_new:
            response.set_cookie(cookie_name, session_id, httponly=True, samesite="lax", path="/")
        return response

    # ----------------------
    # Route Includes
    # ----------------------
    app.include_router(router)
    app.include_router(api_router)

    # ----------------------
    # Workflow errors -> HTTP
    # ----------------------
    @app.exception_handler(RemixConfigError)
    async def _config_error(request: Request, exc: RemixConfigError):
        return JSONResponse({"detail": f"Configuration error: {exc}"}, status_code=503)

    @app.exception_handler(EmptyInputError)
    async def _empty_input(request: Request, exc: EmptyInputError):
        return JSONResponse({"detail": str(exc)}, status_code=400)

    @app.exception_handler(WorkflowBusyError)
    async def _busy(request: Request, exc: WorkflowBusyError):
        return JSONResponse({"detail": str(exc)}, status_code=409)

    @app.exception_handler(UnknownVariantError)
    async def _unknown_variant(request: Request, exc: UnknownVariantError):
        return JSONResponse({"detail": str(exc)}, status_code=404)

    @app.on_event("startup")
    async def on_startup():
        engine = app.state.store.engine
        if engine is not None:
            await init_db(engine, create_all=settings.RUN_DB_CREATE_ALL)
        if not settings.llm_configured:
            logger.warning("LLM_API_KEY not set; remixing will fail until it is configured")

    @app.on_event("shutdown")
    async def on_shutdown():
        await app.state.store.dispose()

    return app


app = create_app()

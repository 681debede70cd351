import logging
import uuid
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette import status

from pickup_plants.app.api.deps import apply_session_cookies
from pickup_plants.app.api.routes import api_router
from pickup_plants.app.api.routes.pages import render
from pickup_plants.app.core.config import get_settings
from pickup_plants.app.core.errors import LoginRequired, RecipeFormError, SessionPending
from pickup_plants.app.services.session_registry import SessionRegistry
from pickup_plants.app.services.supabase_auth import SupabaseAuthProvider

logger = logging.getLogger(__name__)


def _validation_body(details):
    return {
        "error_code": "validation_error",
        "message": "Invalid request payload.",
        "details": details,
        "request_id": str(uuid.uuid4()),
    }


async def validation_exception_handler(request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", []) if part is not None)
        msg = err.get("msg", "Invalid value")
        details.append({"field": loc or None, "message": msg})
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_validation_body(details))


async def recipe_form_exception_handler(request, exc: RecipeFormError):
    details = [{"field": field, "message": message} for field, message in exc.errors.items()]
    return JSONResponse(status_code=exc.status_code, content=_validation_body(details))


async def login_required_handler(request, exc: LoginRequired):
    return RedirectResponse(f"/login?next={quote(exc.next_path, safe='/')}", status_code=status.HTTP_303_SEE_OTHER)


async def session_pending_handler(request, exc: SessionPending):
    response = render(request, "loading.html", {})
    response.headers["Refresh"] = "1"
    return response


def build_session_registry(settings) -> SessionRegistry:
    def provider_factory():
        return SupabaseAuthProvider(
            settings.supabase_url,
            settings.supabase_anon_key,
            timeout_seconds=settings.provider_timeout_seconds,
        )

    return SessionRegistry(
        provider_factory,
        refresh_margin_seconds=settings.token_refresh_margin_seconds,
        idle_timeout_seconds=settings.session_idle_timeout_seconds,
        max_sessions=settings.session_max_active,
    )


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Pick Up Plants", version="0.1.0")
    app.state.session_registry = build_session_registry(settings)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RecipeFormError, recipe_form_exception_handler)
    app.add_exception_handler(LoginRequired, login_required_handler)
    app.add_exception_handler(SessionPending, session_pending_handler)
    app.include_router(api_router)
    app.mount("/media", StaticFiles(directory=settings.media_root), name="media")

    @app.middleware("http")
    async def session_cookies(request: Request, call_next):
        response = await call_next(request)
        apply_session_cookies(request, response)
        return response

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        registry: SessionRegistry = app.state.session_registry
        logger.info("Closing %d browser sessions", len(registry))
        registry.close()

    return app


app = create_app()

"""HTML navigation shell: login plus the recipe pages that require a signed-in user."""
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from pickup_plants.app.api.deps import (
    end_session,
    get_db_session,
    get_or_create_session_manager,
    get_session_manager,
    get_session_registry,
    get_storage_provider,
    require_page_user,
    safe_next_path,
)
from pickup_plants.app.core.config import get_settings
from pickup_plants.app.core.errors import AuthProviderError, RecipeFormError
from pickup_plants.app.schemas.recipe import Difficulty, RecipeSummary
from pickup_plants.app.services import recipes_service
from pickup_plants.app.services.recipe_form import parse_recipe_form
from pickup_plants.app.services.scaling import step_servings
from pickup_plants.app.services.session_manager import SessionManager
from pickup_plants.app.services.session_registry import SessionRegistry
from pickup_plants.app.services.storage.base import StorageProvider

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[2] / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(tags=["pages"])


def render(
    request: Request,
    name: str,
    context: Dict[str, Any],
    manager: Optional[SessionManager] = None,
    status_code: int = status.HTTP_200_OK,
):
    user = manager.user if manager is not None else None
    return templates.TemplateResponse(request, name, {"user": user, **context}, status_code=status_code)


def render_login(request: Request, manager: Optional[SessionManager], next_path: str, **extra):
    status_code = extra.pop("status_code", status.HTTP_200_OK)
    context = {
        "next": next_path,
        "error": manager.state.error if manager is not None else None,
        "notice": None,
        "email": "",
        **extra,
    }
    return render(request, "login.html", context, manager=None, status_code=status_code)


@router.get("/login")
async def login_page(
    request: Request,
    next: str = "/",
    manager: Optional[SessionManager] = Depends(get_session_manager),
):
    next_path = safe_next_path(next)
    if manager is not None:
        await manager.wait_until_resolved(get_settings().auth_resolve_timeout_seconds)
        if manager.user is not None:
            return RedirectResponse(next_path, status_code=status.HTTP_303_SEE_OTHER)
    return render_login(request, manager, next_path)


@router.post("/login")
async def login_submit(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    next: str = Form("/"),
    action: str = Form("sign_in"),
    manager: SessionManager = Depends(get_or_create_session_manager),
):
    next_path = safe_next_path(next)
    email = email.strip()
    if not email or not password:
        return render_login(
            request,
            manager,
            next_path,
            error="Email and password are required",
            email=email,
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    try:
        if action == "sign_up":
            await manager.sign_up(email, password)
        else:
            await manager.sign_in(email, password)
    except AuthProviderError:
        return render_login(request, manager, next_path, email=email, status_code=status.HTTP_401_UNAUTHORIZED)

    if manager.user is None:
        return render_login(
            request, manager, next_path, email=email, notice="Check your email to confirm your account."
        )
    return RedirectResponse(next_path, status_code=status.HTTP_303_SEE_OTHER)


@router.post("/login/reset")
async def password_reset_submit(
    request: Request,
    email: str = Form(""),
    next: str = Form("/"),
    manager: SessionManager = Depends(get_or_create_session_manager),
):
    next_path = safe_next_path(next)
    email = email.strip()
    if not email:
        return render_login(
            request, manager, next_path, error="Email is required", status_code=status.HTTP_400_BAD_REQUEST
        )
    try:
        await manager.reset_password(email, get_settings().password_reset_redirect_url)
    except AuthProviderError:
        return render_login(request, manager, next_path, email=email, status_code=status.HTTP_400_BAD_REQUEST)
    return render_login(
        request, manager, next_path, email=email, notice="If that account exists, a reset link is on its way."
    )


@router.post("/logout")
async def logout(
    request: Request,
    manager: Optional[SessionManager] = Depends(get_session_manager),
    registry: SessionRegistry = Depends(get_session_registry),
):
    if manager is not None:
        try:
            await manager.sign_out()
        except AuthProviderError as exc:
            logger.warning("provider sign-out failed; ending local session anyway: %s", exc.message)
    end_session(request, registry)
    return RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/")
def home(
    request: Request,
    db: Session = Depends(get_db_session),
    manager: SessionManager = Depends(require_page_user),
):
    featured = [RecipeSummary.from_row(r) for r in recipes_service.list_recipes(db, limit=3)]
    return render(
        request,
        "home.html",
        {"featured": featured, "categories": recipes_service.list_categories(db)},
        manager=manager,
    )


@router.get("/recipes")
def recipes_page(
    request: Request,
    q: Optional[str] = None,
    category: Optional[str] = None,
    db: Session = Depends(get_db_session),
    manager: SessionManager = Depends(require_page_user),
):
    recipes = [RecipeSummary.from_row(r) for r in recipes_service.list_recipes(db, q=q, category=category)]
    return render(
        request,
        "recipes.html",
        {
            "recipes": recipes,
            "q": q or "",
            "category": category or "",
            "categories": recipes_service.list_categories(db),
        },
        manager=manager,
    )


def _blank_form() -> Dict[str, Any]:
    return {
        "title": "",
        "description": "",
        "category": "",
        "image_url": "",
        "prep_time_minutes": "0",
        "cook_time_minutes": "0",
        "servings": "4",
        "difficulty": Difficulty.MEDIUM.value,
        "spicy_level": "0",
        "tags": "",
        "ingredients": [{"name": "", "amount": "", "unit": "", "notes": ""}],
        "instructions": [""],
        "tips": [""],
    }


def _submitted_form(form) -> Dict[str, Any]:
    values = _blank_form()
    for key in ("title", "description", "category", "image_url", "prep_time_minutes", "cook_time_minutes",
                "servings", "difficulty", "spicy_level", "tags"):
        value = form.get(key)
        if isinstance(value, str):
            values[key] = value
    names = form.getlist("ingredient_name")
    amounts = form.getlist("ingredient_amount")
    units = form.getlist("ingredient_unit")
    notes = form.getlist("ingredient_notes")
    rows = []
    for index, name in enumerate(names):
        rows.append(
            {
                "name": name,
                "amount": amounts[index] if index < len(amounts) else "",
                "unit": units[index] if index < len(units) else "",
                "notes": notes[index] if index < len(notes) else "",
            }
        )
    values["ingredients"] = rows or values["ingredients"]
    values["instructions"] = form.getlist("instruction") or values["instructions"]
    values["tips"] = form.getlist("tip") or values["tips"]
    return values


def _render_form(request, manager, values, errors=None, status_code=status.HTTP_200_OK):
    return render(
        request,
        "recipe_form.html",
        {"values": values, "errors": errors or {}, "difficulties": [d.value for d in Difficulty]},
        manager=manager,
        status_code=status_code,
    )


@router.get("/recipe/new")
def new_recipe_page(request: Request, manager: SessionManager = Depends(require_page_user)):
    return _render_form(request, manager, _blank_form())


@router.post("/recipe/new")
async def new_recipe_submit(
    request: Request,
    db: Session = Depends(get_db_session),
    storage: StorageProvider = Depends(get_storage_provider),
    manager: SessionManager = Depends(require_page_user),
):
    form = await request.form()
    try:
        submission = await parse_recipe_form(form, get_settings().recipe_image_max_bytes)
    except RecipeFormError as exc:
        return _render_form(request, manager, _submitted_form(form), exc.errors, status_code=exc.status_code)
    try:
        recipes_service.submit_recipe(db, storage, manager.user.id, submission)
    except Exception:  # noqa: BLE001
        logger.exception("recipe submission failed", extra={"user_id": manager.user.id})
        return _render_form(
            request,
            manager,
            _submitted_form(form),
            {"form": "Failed to create recipe"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return RedirectResponse("/recipes", status_code=status.HTTP_303_SEE_OTHER)


def parse_servings_param(value: Optional[str]) -> Optional[int]:
    """Unparseable values fall back to the recipe's own servings; low ones clamp to 1."""
    if value is None or not value.strip():
        return None
    try:
        return step_servings(int(value.strip()), 0)
    except ValueError:
        return None


@router.get("/recipe/{recipe_id}")
def recipe_detail_page(
    request: Request,
    recipe_id: str,
    servings: Optional[str] = None,
    db: Session = Depends(get_db_session),
    manager: SessionManager = Depends(require_page_user),
):
    requested = parse_servings_param(servings)
    try:
        recipe = recipes_service.get_recipe_detail(db, recipe_id, requested)
    except HTTPException as exc:
        if exc.status_code != status.HTTP_404_NOT_FOUND:
            raise
        return render(
            request,
            "recipe_detail.html",
            {"recipe": None, "error": exc.detail},
            manager=manager,
            status_code=status.HTTP_404_NOT_FOUND,
        )
    return render(
        request,
        "recipe_detail.html",
        {
            "recipe": recipe,
            "error": None,
            "fewer": step_servings(recipe.requested_servings, -1),
            "more": step_servings(recipe.requested_servings, 1),
        },
        manager=manager,
    )

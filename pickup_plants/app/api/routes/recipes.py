import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from pickup_plants.app.api.deps import get_current_user, get_db_session, get_storage_provider
from pickup_plants.app.core.config import get_settings
from pickup_plants.app.schemas.auth import CurrentUser
from pickup_plants.app.schemas.recipe import RecipeDetail, RecipeRead, RecipeSummary
from pickup_plants.app.services import recipes_service
from pickup_plants.app.services.recipe_form import parse_recipe_form
from pickup_plants.app.services.storage.base import StorageProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recipes", tags=["recipes"])


@router.get("", response_model=List[RecipeSummary])
def list_recipes(
    q: Optional[str] = None,
    category: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    return [RecipeSummary.from_row(r) for r in recipes_service.list_recipes(db, q=q, category=category, limit=limit)]


@router.get("/{recipe_id}", response_model=RecipeDetail)
def get_recipe(
    recipe_id: str,
    servings: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    return recipes_service.get_recipe_detail(db, recipe_id, servings)


@router.post("", response_model=RecipeRead, status_code=status.HTTP_201_CREATED)
async def create_recipe(
    request: Request,
    db: Session = Depends(get_db_session),
    storage: StorageProvider = Depends(get_storage_provider),
    current_user: CurrentUser = Depends(get_current_user),
):
    settings = get_settings()
    form = await request.form()
    submission = await parse_recipe_form(form, settings.recipe_image_max_bytes)
    try:
        recipe = recipes_service.submit_recipe(db, storage, current_user.id, submission)
    except Exception as exc:  # noqa: BLE001
        logger.exception("recipe submission failed", extra={"user_id": current_user.id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create recipe"
        ) from exc
    return RecipeRead.from_row(recipe)

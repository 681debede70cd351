import logging
from typing import List, Optional
from uuid import uuid4

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pickup_plants.app.db import models
from pickup_plants.app.schemas.recipe import RecipeCreate, RecipeDetail, RecipeRead
from pickup_plants.app.services.recipe_form import RecipeSubmission
from pickup_plants.app.services.scaling import scale_ingredients
from pickup_plants.app.services.storage.base import StorageProvider

logger = logging.getLogger(__name__)


def _row_values(data: RecipeCreate) -> dict:
    return {
        "title": data.title,
        "description": data.description,
        "category": data.category,
        "image_url": data.image_url,
        "prep_time": data.prep_time_minutes,
        "cook_time": data.cook_time_minutes,
        "servings": data.servings,
        "difficulty": data.difficulty.value,
        "spicy_level": data.spicy_level,
        "ingredients": [i.model_dump(mode="json") for i in data.ingredients],
        "instructions": [i.model_dump(mode="json") for i in data.instructions],
        "tips": list(data.tips),
        "substitutions": [s.model_dump(mode="json") for s in data.substitutions],
        "tags": list(data.tags),
    }


def create_recipe(db: Session, user_id: str, data: RecipeCreate, recipe_id: Optional[str] = None) -> models.Recipe:
    recipe = models.Recipe(id=recipe_id or uuid4().hex, user_id=str(user_id), **_row_values(data))
    db.add(recipe)
    db.commit()
    db.refresh(recipe)
    return recipe


def update_recipe_values(db: Session, recipe: models.Recipe, data: RecipeCreate) -> models.Recipe:
    for field, value in _row_values(data).items():
        setattr(recipe, field, value)
    db.commit()
    db.refresh(recipe)
    return recipe


def submit_recipe(
    db: Session,
    storage: StorageProvider,
    user_id: str,
    submission: RecipeSubmission,
) -> models.Recipe:
    """Store the uploaded image (if any) and insert the recipe row."""
    data = submission.data
    stored_url = None
    if submission.image_bytes is not None:
        stored_url = storage.save_image(submission.image_bytes, submission.image_filename or "upload.jpg")
        data = data.model_copy(update={"image_url": stored_url})
    try:
        recipe = create_recipe(db, user_id, data)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("recipe insert failed", extra={"user_id": str(user_id)})
        if stored_url:
            storage.delete_image(stored_url)
        raise
    logger.info("recipe created", extra={"user_id": str(user_id), "recipe_id": recipe.id})
    return recipe


def escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_recipes(
    db: Session,
    q: Optional[str] = None,
    category: Optional[str] = None,
    limit: int = 50,
) -> List[models.Recipe]:
    stmt = select(models.Recipe)
    if q and q.strip():
        pattern = f"%{escape_like(q.strip().lower())}%"
        stmt = stmt.where(
            or_(
                func.lower(models.Recipe.title).like(pattern, escape="\\"),
                func.lower(models.Recipe.description).like(pattern, escape="\\"),
            )
        )
    if category and category.strip():
        stmt = stmt.where(func.lower(models.Recipe.category) == category.strip().lower())
    stmt = stmt.order_by(models.Recipe.created_at.desc(), models.Recipe.title.asc()).limit(limit)
    return list(db.scalars(stmt).all())


def list_categories(db: Session) -> List[str]:
    stmt = select(models.Recipe.category).where(models.Recipe.category.is_not(None)).distinct()
    return sorted({c for c in db.scalars(stmt).all() if c}, key=str.lower)


def get_recipe(db: Session, recipe_id: str) -> models.Recipe:
    recipe = db.get(models.Recipe, recipe_id)
    if not recipe:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")
    return recipe


def get_recipe_detail(db: Session, recipe_id: str, servings: Optional[int] = None) -> RecipeDetail:
    recipe = RecipeRead.from_row(get_recipe(db, recipe_id))
    requested = servings if servings is not None else recipe.servings
    return RecipeDetail(
        **recipe.model_dump(),
        requested_servings=requested,
        scaled_ingredients=scale_ingredients(recipe.ingredients, recipe.servings, requested),
    )

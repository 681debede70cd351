import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from pickup_plants.app.core.errors import RecipeFormError
from pickup_plants.app.db import models
from pickup_plants.app.services import recipes_service
from pickup_plants.app.services.parsing_utils import slugify
from pickup_plants.app.services.recipe_form import validate_recipe_payload

logger = logging.getLogger(__name__)

SAMPLE_AUTHOR_ID = "pickup-plants"
DEFAULT_SAMPLE_PATH = Path(__file__).resolve().parents[3] / "static_data" / "sample_recipes.json"


def _load_json(path: Path) -> List[Dict[str, Any]]:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def seed_sample_recipes(db: Session, path: Path = DEFAULT_SAMPLE_PATH, user_id: str = SAMPLE_AUTHOR_ID) -> Dict[str, int]:
    """Upsert the bundled sample recipes through the canonical recipe schema."""
    stats = {"inserted": 0, "updated": 0, "skipped": 0}
    if not path.exists():
        logger.warning("sample recipe file not found: %s", path)
        return stats

    for item in _load_json(path):
        recipe_id = item.get("id") or slugify(item.get("title", ""))
        payload = {k: v for k, v in item.items() if k not in {"id", "user_id", "author"}}
        try:
            data = validate_recipe_payload(payload)
        except RecipeFormError as exc:
            logger.warning("skipping invalid sample recipe %s: %s", recipe_id, exc)
            stats["skipped"] += 1
            continue

        existing = db.get(models.Recipe, recipe_id)
        if existing:
            recipes_service.update_recipe_values(db, existing, data)
            stats["updated"] += 1
        else:
            recipes_service.create_recipe(db, user_id, data, recipe_id=recipe_id)
            stats["inserted"] += 1

    return stats

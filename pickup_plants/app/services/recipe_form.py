"""
Parsing and validation of recipe submissions.

Two encodings arrive here: the JSON API posts multipart data with
JSON-encoded list fields, while the HTML form posts repeated fields per
ingredient/instruction row. Both end up as a validated ``RecipeCreate`` or a
``RecipeFormError`` listing one message per field; nothing is stored until
the whole submission is valid.
"""
import json
import logging
from dataclasses import dataclass
from itertools import zip_longest
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from pickup_plants.app.core.errors import RecipeFormError
from pickup_plants.app.schemas.recipe import RecipeCreate
from pickup_plants.app.services.parsing_utils import clean_text
from pickup_plants.app.services.storage.base import InvalidImageError, verify_image

logger = logging.getLogger(__name__)

# Form field name -> aliases accepted from older clients.
_SCALAR_FIELDS = {
    "title": ("title",),
    "description": ("description",),
    "category": ("category",),
    "image_url": ("image_url", "imageUrl"),
    "prep_time_minutes": ("prep_time_minutes", "prepTime", "prep_time"),
    "cook_time_minutes": ("cook_time_minutes", "cookTime", "cook_time"),
    "servings": ("servings",),
    "difficulty": ("difficulty",),
    "spicy_level": ("spicy_level", "spicyLevel"),
}


@dataclass
class RecipeSubmission:
    data: RecipeCreate
    image_bytes: Optional[bytes] = None
    image_filename: Optional[str] = None


def _first(form, names) -> Optional[str]:
    for name in names:
        value = form.get(name)
        if value is not None and not hasattr(value, "filename"):
            return value
    return None


def _load_json_list(raw: str, field: str, errors: Dict[str, str]) -> List[Any]:
    try:
        value = json.loads(raw)
    except ValueError:
        errors[field] = f"{field.capitalize()} must be a JSON list"
        return []
    if not isinstance(value, list):
        errors[field] = f"{field.capitalize()} must be a JSON list"
        return []
    return value


def _ingredient_rows(form, errors: Dict[str, str]) -> List[Dict[str, Any]]:
    raw = form.get("ingredients")
    if isinstance(raw, str) and raw.strip():
        return _load_json_list(raw, "ingredients", errors)
    rows = []
    for name, amount, unit, notes in zip_longest(
        form.getlist("ingredient_name"),
        form.getlist("ingredient_amount"),
        form.getlist("ingredient_unit"),
        form.getlist("ingredient_notes"),
        fillvalue="",
    ):
        if not any(clean_text(v) for v in (name, amount, unit, notes)):
            continue
        rows.append({"name": name, "amount": amount, "unit": unit, "notes": notes})
    return rows


def _instruction_rows(form, errors: Dict[str, str]) -> List[Any]:
    raw = form.get("instructions")
    if isinstance(raw, str) and raw.strip():
        items = _load_json_list(raw, "instructions", errors)
    else:
        items = [text for text in form.getlist("instruction") if clean_text(text)]
    rows = []
    for index, item in enumerate(items, start=1):
        if isinstance(item, str):
            rows.append({"step": index, "description": item})
        else:
            rows.append(item)
    return rows


def _text_list(form, json_field: str, repeated_field: str, errors: Dict[str, str]) -> List[Any]:
    raw = form.get(json_field)
    if isinstance(raw, str) and raw.strip().startswith("["):
        return _load_json_list(raw, json_field, errors)
    if isinstance(raw, str) and raw.strip():
        return [part for part in (p.strip() for p in raw.split(",")) if part]
    return [v for v in form.getlist(repeated_field) if clean_text(v)]


def _error_field(loc) -> str:
    field = str(loc[0]) if loc else "form"
    return field


def _error_message(err: Dict[str, Any]) -> str:
    message = err.get("msg", "Invalid value")
    if message.startswith("Value error, "):
        message = message[len("Value error, ") :]
    loc = err.get("loc") or ()
    if len(loc) >= 2 and isinstance(loc[1], int):
        label = "Ingredient" if loc[0] == "ingredients" else "Step"
        return f"{label} {loc[1] + 1}: {message}"
    return message


def validate_recipe_payload(payload: Dict[str, Any], errors: Optional[Dict[str, str]] = None) -> RecipeCreate:
    errors = dict(errors or {})
    try:
        data = RecipeCreate.model_validate(payload)
    except ValidationError as exc:
        for err in exc.errors():
            errors.setdefault(_error_field(err.get("loc")), _error_message(err))
        raise RecipeFormError(errors) from None
    if errors:
        raise RecipeFormError(errors)
    return data


async def parse_recipe_form(form, max_image_bytes: int) -> RecipeSubmission:
    errors: Dict[str, str] = {}
    payload: Dict[str, Any] = {}
    for field, names in _SCALAR_FIELDS.items():
        value = _first(form, names)
        if value is not None:
            payload[field] = value

    category = payload.get("category")
    if not clean_text(category):
        categories = _text_list(form, "categories", "categories", errors)
        if categories:
            payload["category"] = categories[0]

    payload["ingredients"] = _ingredient_rows(form, errors)
    payload["instructions"] = _instruction_rows(form, errors)
    payload["tips"] = _text_list(form, "tips", "tip", errors)
    payload["tags"] = _text_list(form, "tags", "tag", errors)
    raw_subs = form.get("substitutions")
    if isinstance(raw_subs, str) and raw_subs.strip():
        payload["substitutions"] = _load_json_list(raw_subs, "substitutions", errors)

    if not clean_text(payload.get("description")):
        errors["description"] = "Description is required"

    image_bytes = None
    image_filename = None
    upload = form.get("image")
    has_upload = upload is not None and hasattr(upload, "filename") and bool(upload.filename)
    status_code = 422
    if has_upload:
        image_bytes = await upload.read()
        image_filename = upload.filename
        if max_image_bytes and len(image_bytes) > max_image_bytes:
            errors["image"] = "Image too large"
            status_code = 413
        else:
            try:
                verify_image(image_bytes)
            except InvalidImageError as exc:
                errors["image"] = str(exc)
    elif not clean_text(payload.get("image_url")):
        errors["image"] = "Image is required"

    try:
        data = validate_recipe_payload(payload, errors)
    except RecipeFormError as exc:
        logger.debug("recipe form rejected: %s", sorted(exc.errors))
        raise RecipeFormError(exc.errors, status_code=status_code) from None
    return RecipeSubmission(data=data, image_bytes=image_bytes, image_filename=image_filename)

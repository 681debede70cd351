import enum
from datetime import datetime
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from pickup_plants.app.services.parsing_utils import clean_text, parse_minutes, parse_servings
from pickup_plants.app.services.quantity_parser import parse_quantity_display

MAX_SPICY_LEVEL = 5


class Difficulty(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


def _required_text(value: Any, label: str) -> str:
    text = clean_text(value)
    if not text:
        raise ValueError(f"{label} is required")
    return text


class Ingredient(BaseModel):
    name: str = Field(validation_alias=AliasChoices("name", "item"))
    amount: float = Field(0, ge=0)
    unit: str = ""
    notes: Optional[str] = None
    is_optional: bool = Field(False, validation_alias=AliasChoices("is_optional", "isOptional", "optional"))

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, value):
        return _required_text(value, "Ingredient name")

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount(cls, value):
        if value is None or value == "":
            return 0
        parsed = parse_quantity_display(value)
        if parsed is None:
            raise ValueError("Amount must be a number such as 2, 0.5 or 1 1/2")
        return float(parsed)

    @field_validator("unit", mode="before")
    @classmethod
    def normalize_unit(cls, value):
        return clean_text(value)

    @field_validator("notes", mode="before")
    @classmethod
    def normalize_notes(cls, value):
        return clean_text(value) or None


class Instruction(BaseModel):
    step: int = Field(0, ge=0)
    description: str = Field(validation_alias=AliasChoices("description", "text"))
    timing_minutes: Optional[int] = Field(
        None, ge=0, validation_alias=AliasChoices("timing_minutes", "timingInMinutes")
    )
    image_url: Optional[str] = Field(None, validation_alias=AliasChoices("image_url", "image"))

    @field_validator("description", mode="before")
    @classmethod
    def validate_description(cls, value):
        return _required_text(value, "Instruction step")


class Alternative(BaseModel):
    name: str
    notes: Optional[str] = None
    ratio: Optional[str] = None


class Substitution(BaseModel):
    ingredient: str
    alternatives: List[Alternative] = []

    @field_validator("alternatives", mode="before")
    @classmethod
    def coerce_alternatives(cls, value):
        # Stored rows may hold plain strings.
        if not value:
            return []
        return [{"name": item} if isinstance(item, str) else item for item in value]


class RecipeBase(BaseModel):
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = Field(None, validation_alias=AliasChoices("image_url", "imageUrl", "image"))
    prep_time_minutes: int = Field(
        0, ge=0, validation_alias=AliasChoices("prep_time_minutes", "prepTime", "prep_time")
    )
    cook_time_minutes: int = Field(
        0, ge=0, validation_alias=AliasChoices("cook_time_minutes", "cookTime", "cook_time")
    )
    servings: int = Field(1, ge=1)
    difficulty: Difficulty = Difficulty.MEDIUM
    spicy_level: int = Field(
        0, ge=0, le=MAX_SPICY_LEVEL, validation_alias=AliasChoices("spicy_level", "spicyLevel")
    )
    tags: List[str] = []

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, value):
        return _required_text(value, "Title")

    @field_validator("description", "category", mode="before")
    @classmethod
    def normalize_optional_text(cls, value):
        return clean_text(value) or None

    @field_validator("image_url", mode="before")
    @classmethod
    def normalize_image_url(cls, value):
        return clean_text(value) or None

    @field_validator("prep_time_minutes", "cook_time_minutes", mode="before")
    @classmethod
    def parse_time(cls, value):
        if value is None or value == "":
            return 0
        minutes = parse_minutes(value)
        if minutes is None:
            raise ValueError("Time must be a number of minutes")
        return minutes

    @field_validator("servings", mode="before")
    @classmethod
    def parse_servings_value(cls, value):
        servings = parse_servings(value)
        if servings is None:
            raise ValueError("Servings must be a whole number")
        return servings

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, value):
        if not value:
            return []
        seen = []
        for tag in value:
            cleaned = clean_text(tag)
            if cleaned and cleaned.lower() not in {t.lower() for t in seen}:
                seen.append(cleaned)
        return seen


class RecipeCreate(RecipeBase):
    ingredients: List[Ingredient]
    instructions: List[Instruction]
    tips: List[str] = []
    substitutions: List[Substitution] = []

    @field_validator("ingredients")
    @classmethod
    def validate_ingredients(cls, value: List[Ingredient]) -> List[Ingredient]:
        if not value:
            raise ValueError("At least one ingredient is required")
        return value

    @field_validator("instructions")
    @classmethod
    def validate_instructions(cls, value: List[Instruction]) -> List[Instruction]:
        if not value:
            raise ValueError("At least one instruction is required")
        return value

    @field_validator("tips", mode="before")
    @classmethod
    def coerce_tips(cls, value):
        if not value:
            return []
        tips = []
        for tip in value:
            text = clean_text(tip.get("text") if isinstance(tip, dict) else tip)
            if text:
                tips.append(text)
        return tips

    @model_validator(mode="after")
    def renumber_instructions(self):
        ordered = sorted(enumerate(self.instructions), key=lambda pair: (pair[1].step or pair[0] + 1, pair[0]))
        for position, (_, instruction) in enumerate(ordered, start=1):
            instruction.step = position
        self.instructions = [instruction for _, instruction in ordered]
        return self


class RecipeRead(RecipeCreate):
    id: str
    user_id: str
    total_time_minutes: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_row(cls, row) -> "RecipeRead":
        return cls.model_validate(
            {
                "id": row.id,
                "user_id": row.user_id,
                "title": row.title,
                "description": row.description,
                "category": row.category,
                "image_url": row.image_url,
                "prep_time_minutes": row.prep_time or 0,
                "cook_time_minutes": row.cook_time or 0,
                "total_time_minutes": row.total_time,
                "servings": row.servings,
                "difficulty": row.difficulty,
                "spicy_level": row.spicy_level or 0,
                "ingredients": row.ingredients or [],
                "instructions": row.instructions or [],
                "tips": row.tips or [],
                "substitutions": row.substitutions or [],
                "tags": row.tags or [],
                "created_at": row.created_at,
                "updated_at": row.updated_at,
            }
        )


class RecipeSummary(BaseModel):
    id: str
    title: str
    category: Optional[str] = None
    image_url: Optional[str] = None
    prep_time_minutes: int = 0
    total_time_minutes: int = 0
    difficulty: Difficulty
    servings: int

    @classmethod
    def from_row(cls, row) -> "RecipeSummary":
        return cls(
            id=row.id,
            title=row.title,
            category=row.category,
            image_url=row.image_url,
            prep_time_minutes=row.prep_time or 0,
            total_time_minutes=row.total_time,
            difficulty=row.difficulty,
            servings=row.servings,
        )


class ScaledIngredient(BaseModel):
    name: str
    amount: float
    base_amount: float
    unit: str = ""
    notes: Optional[str] = None
    is_optional: bool = False


class RecipeDetail(RecipeRead):
    requested_servings: int
    scaled_ingredients: List[ScaledIngredient]

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text

from pickup_plants.app.db.base import Base


class Recipe(Base):
    """Row in the provider's ``recipes`` table.

    List-valued fields are stored as JSON documents in the canonical shape
    defined by ``pickup_plants.app.schemas.recipe``.
    """

    __tablename__ = "recipes"

    id = Column(String(64), primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text)
    category = Column(String(64), index=True)
    image_url = Column(String)
    prep_time = Column(Integer, nullable=False, default=0)
    cook_time = Column(Integer, nullable=False, default=0)
    servings = Column(Integer, nullable=False, default=1)
    difficulty = Column(String(16), nullable=False, default="medium")
    spicy_level = Column(Integer, nullable=False, default=0)
    ingredients = Column(JSON, nullable=False, default=list)
    instructions = Column(JSON, nullable=False, default=list)
    tips = Column(JSON, nullable=False, default=list)
    substitutions = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (Index("ix_recipes_user_created", "user_id", "created_at"),)

    @property
    def total_time(self) -> int:
        return (self.prep_time or 0) + (self.cook_time or 0)

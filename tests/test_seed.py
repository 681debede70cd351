import json

from pickup_plants.app.db import models
from pickup_plants.app.services.static_seed_service import SAMPLE_AUTHOR_ID, seed_sample_recipes


def test_seed_loads_all_sample_recipes(db_session):
    stats = seed_sample_recipes(db_session)
    assert stats == {"inserted": 6, "updated": 0, "skipped": 0}

    curry = db_session.get(models.Recipe, "lentil-curry")
    assert curry.user_id == SAMPLE_AUTHOR_ID
    assert curry.difficulty == "medium"
    assert curry.prep_time == 15
    assert curry.spicy_level == 2
    assert [step["step"] for step in curry.instructions] == [1, 2, 3]

    oats = db_session.get(models.Recipe, "overnight-oats")
    assert oats.image_url == "/images/recipes/overnight-oats.jpg"
    assert oats.ingredients[0]["name"] == "rolled oats"
    assert oats.ingredients[0]["amount"] == 0.5
    assert oats.tips == ["Keeps for up to three days in the fridge."]


def test_seed_is_idempotent(db_session):
    seed_sample_recipes(db_session)
    stats = seed_sample_recipes(db_session)
    assert stats == {"inserted": 0, "updated": 6, "skipped": 0}
    assert db_session.query(models.Recipe).count() == 6


def test_seed_skips_invalid_entries(db_session, tmp_path):
    path = tmp_path / "recipes.json"
    path.write_text(
        json.dumps(
            [
                {"id": "broken", "title": "No Ingredients", "ingredients": [], "instructions": [{"description": "x"}]},
                {
                    "title": "Plain Rice",
                    "ingredients": [{"name": "rice", "amount": 1, "unit": "cup"}],
                    "instructions": [{"description": "Boil."}],
                },
            ]
        )
    )
    stats = seed_sample_recipes(db_session, path)
    assert stats == {"inserted": 1, "updated": 0, "skipped": 1}
    assert db_session.get(models.Recipe, "plain-rice") is not None


def test_seed_missing_file_is_a_no_op(db_session, tmp_path):
    assert seed_sample_recipes(db_session, tmp_path / "missing.json") == {"inserted": 0, "updated": 0, "skipped": 0}

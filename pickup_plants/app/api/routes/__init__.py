from fastapi import APIRouter

from pickup_plants.app.api.routes import auth, pages, recipes

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(recipes.router)
api_router.include_router(pages.router)

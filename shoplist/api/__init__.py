# shoplist/api/__init__.py
from fastapi import APIRouter
from shoplist.api.routers import carts, health, location, plan

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(carts.router)
api_router.include_router(plan.router)
api_router.include_router(location.router)

from fastapi.routing import APIRouter

from .auth import auth_router
from .categories import categories_router
from .dashboard import dashboard_router
from .transactions import transactions_router
from .upload import upload_router

api_router = APIRouter(prefix="/api", tags=["API"])

# Mount routers under /api
api_router.include_router(auth_router)
api_router.include_router(categories_router)
api_router.include_router(transactions_router)
api_router.include_router(dashboard_router)
api_router.include_router(upload_router)

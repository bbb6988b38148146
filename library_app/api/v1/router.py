from fastapi import APIRouter

from .books import router as books_router
from .users import router as users_router
from .rentals import router as rentals_router
from .requests import router as requests_router
from .stats import router as stats_router
from .notification import router as notification_router

# Create main API router
api_router = APIRouter()

# Include all routers
api_router.include_router(books_router, tags=["Books"])
api_router.include_router(users_router, tags=["Users"])
api_router.include_router(rentals_router, tags=["Rentals"])
api_router.include_router(requests_router, tags=["Requests"])
api_router.include_router(stats_router, tags=["Statistics"])
api_router.include_router(notification_router, tags=["Notifications"])

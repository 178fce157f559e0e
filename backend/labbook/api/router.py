"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from labbook.api.routes import admin, bookings, servers, users

api_router = APIRouter(prefix="/api")
api_router.include_router(users.router)
api_router.include_router(servers.router)
api_router.include_router(bookings.router)
api_router.include_router(admin.router)

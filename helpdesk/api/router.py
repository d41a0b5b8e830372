from fastapi import APIRouter

from helpdesk.api.v1 import health, tickets


api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(tickets.router, prefix="/tickets", tags=["tickets"])

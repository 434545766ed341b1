from fastapi import APIRouter
from app.api.v1.endpoints import auth, users, pages, shares, invites, public, workspaces, notifications

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(pages.router, prefix="/pages", tags=["pages"])
api_router.include_router(shares.router, prefix="/shares", tags=["shares"])
api_router.include_router(invites.router, prefix="/invites", tags=["invites"])
api_router.include_router(public.router, prefix="/public", tags=["public"])
api_router.include_router(workspaces.router, prefix="/workspaces", tags=["workspaces"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])

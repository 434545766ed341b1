from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.page import PublicPageResponse
from app.services import pages as page_service

router = APIRouter()


@router.get("/pages/{page_id}", response_model=PublicPageResponse)
async def get_public_page(page_id: str, db: AsyncSession = Depends(get_db)):
    """Read-only view of a public page (no login required)"""
    return await page_service.get_public_page(db, page_id)

"""Tag endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user
from models.user import User
from services.tag_service import get_user_tag_names

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("/", response_model=list[str])
async def list_tags(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> list[str]:
    """
    Get every tag used by the current user's bookmarks.

    Sorted ascending, without duplicates. Returns an empty list if tags
    cannot be loaded.
    """
    return await get_user_tag_names(db, current_user.id)

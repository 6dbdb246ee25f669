from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field

from icongen.deps import get_current_user, get_icon_service, get_storage_backend
from icongen.models.user import User
from icongen.services import icons as icons_service
from icongen.services.icons import IconService
from icongen.storage.base import StorageBackend

router = APIRouter()


class GenerateIconRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=1000)


@router.post("/generate")
async def generate_icon(
    body: GenerateIconRequest,
    user: User = Depends(get_current_user),
    service: IconService = Depends(get_icon_service),
):
    """Spend one credit to generate an icon; returns the stored image URL."""
    icon = await service.generate_icon(user.id, body.prompt)
    return {"id": icon.icon_id, "imageUrl": icon.image_url}


@router.get("")
async def icons_list(
    user: User = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage_backend),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Return the current user's icons (newest first)."""
    icons = await icons_service.list_icons(user.id, limit, offset)
    out = [
        {
            "id": str(i.id),
            "prompt": i.prompt,
            "imageUrl": storage.url(i.storage_key),
            "created_at": i.created_at.isoformat(),
        }
        for i in icons
    ]
    return {"icons": out, "limit": limit, "offset": offset}


@router.get("/{icon_id}/image")
async def icon_image(
    icon_id: str,
    user: User = Depends(get_current_user),
    storage: StorageBackend = Depends(get_storage_backend),
):
    """Stream the stored image bytes (owner only)."""
    icon, data = await icons_service.get_icon_image(user.id, icon_id, storage)
    return Response(content=data, media_type=icon.content_type)

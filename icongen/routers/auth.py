from fastapi import APIRouter, Depends

from icongen.deps import get_current_user
from icongen.models.user import User
from icongen.services import credits as credits_service

router = APIRouter()


@router.get("/me")
async def auth_me(user: User = Depends(get_current_user)):
    """Return current user and credit balance. Requires session cookie."""
    return {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "picture": user.picture,
        "credits": await credits_service.get_balance(user.id),
    }

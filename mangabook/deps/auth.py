# mangabook/deps/auth.py
from fastapi import Depends, HTTPException, status
from mangabook.models.user_model import User
from mangabook.utils.token_utils import get_current_user

async def require_active_user(user: User = Depends(get_current_user)) -> User:
    """
    The token alone is not enough: the account is re-read on every request
    so a deactivated user is locked out without revoking tokens.
    """
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated"
        )
    return user

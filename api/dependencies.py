"""API Dependencies - Authentication and role checks"""
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from domain.auth import User, UserInDB
from domain.enums import UserRole
from infrastructure.security import decode_access_token, get_password_hash
from api.schemas import TokenData

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


def _account(user_id: str, username: str, full_name: str, password: str, role: UserRole) -> dict:
    return {
        "user_id": user_id,
        "username": username,
        "full_name": full_name,
        "email": f"{username}@example.com",
        "plain_password": password,
        "role": role,
        "disabled": False,
    }


# Demo accounts, one per role
fake_users_db = {
    account["username"]: account
    for account in (
        _account("123e4567-e89b-12d3-a456-426614174000", "admin", "Admin User", "admin123", UserRole.ADMIN),
        _account("223e4567-e89b-12d3-a456-426614174000", "partner", "Partner Host", "partner123", UserRole.PARTNER),
        _account("323e4567-e89b-12d3-a456-426614174000", "guest", "Guest Traveller", "guest123", UserRole.USER),
    )
}


@lru_cache(maxsize=None)
def _hash_once(plain_password: str) -> str:
    """bcrypt is slow; each demo password is hashed a single time"""
    return get_password_hash(plain_password)


def get_user(db, username: str) -> Optional[UserInDB]:
    record = db.get(username)
    if record is None:
        return None
    fields = {k: v for k, v in record.items() if k != "plain_password"}
    if "plain_password" in record:
        fields["hashed_password"] = _hash_once(record["plain_password"])
    return UserInDB(**fields)


async def get_current_user(token: str = Depends(oauth2_scheme)) -> UserInDB:
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        token_data = TokenData(username=decode_access_token(token).get("sub"))
    except JWTError:
        raise unauthorized
    if token_data.username is None:
        raise unauthorized

    user = get_user(fake_users_db, token_data.username)
    if user is None:
        raise unauthorized
    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if current_user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


def require_roles(*roles: UserRole, code: str = "Auth.Forbidden",
                  message: str = "You are not allowed to perform this action."):
    """Dependency factory: the active user must hold one of `roles`"""

    async def dependency(current_user: User = Depends(get_current_active_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail={"code": code, "message": message})
        return current_user

    return dependency


get_voucher_manager = require_roles(
    UserRole.ADMIN, UserRole.PARTNER,
    code="Voucher.Forbidden",
    message="Only administrators and partners can manage vouchers."
)
get_staff_user = require_roles(UserRole.ADMIN, UserRole.PARTNER)
get_admin_user = require_roles(UserRole.ADMIN)

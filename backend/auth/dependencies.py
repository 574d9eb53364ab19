import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.auth import jwt_handler
from backend.database import SessionLocal
from backend.models.user import ROLE_ADMIN, ROLE_COUNSELOR, User

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> User:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Not authorized, token failed.") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
    finally:
        db.close()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found.")
    return user


def require_counselor(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != ROLE_COUNSELOR:
        raise HTTPException(status_code=403, detail="Access denied. Counselor privileges required.")
    if not current_user.is_approved:
        raise HTTPException(
            status_code=403,
            detail="Access denied. Your counselor account is pending admin approval.",
        )
    return current_user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Access denied. Admin privileges required.")
    return current_user

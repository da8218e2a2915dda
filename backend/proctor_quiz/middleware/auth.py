import logging
from typing import Callable
from fastapi import Request, HTTPException, status
from ..utils.jwt_utils import decode_access_token

logger = logging.getLogger(__name__)


def user_from_claims(payload: dict) -> dict:
    """Participant handle built from verified token claims"""
    return {
        "id": payload.get("sub"),
        "email": payload.get("email") or "",
        "name": payload.get("name") or "",
        "role": payload.get("role") or "student",
        "admissionNumber": payload.get("admissionNumber") or "",
        "branch": payload.get("branch") or "",
    }


class AuthMiddleware:
    async def __call__(self, request: Request, call_next: Callable):
        request.state.user = None

        auth_header = request.headers.get("authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header.split(" ", 1)[1]
            try:
                payload = decode_access_token(token)
            except ValueError as e:
                logger.error(f"❌ Cannot verify tokens: {e}")
                payload = None

            if payload and payload.get("sub"):
                request.state.user = user_from_claims(payload)

        return await call_next(request)


# Dependency functions for FastAPI
async def get_current_user(request: Request) -> dict:
    """Get current user from request state"""
    if getattr(request.state, "user", None) is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )
    return request.state.user


async def require_admin(request: Request) -> dict:
    """Require admin or instructor role"""
    user = await get_current_user(request)
    if user.get("role") not in ["instructor", "admin"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: Admin access required"
        )
    return user

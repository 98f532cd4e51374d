import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from pydantic import BaseModel, Field

from hardware_catalog.core.config import settings
from hardware_catalog.core.metrics import JWT_ACCESS_VALIDATION_TOTAL, PERMISSION_CHECKS_TOTAL

SERVICE_NAME = settings.SERVICE_NAME

bearer_scheme = HTTPBearer()


class CurrentUser(BaseModel):
    """Admin identity taken from the access token issued by the auth service."""

    id: int | str | None = None
    name: str | None = None
    role_id: int | None = None
    role_name: str | None = None
    permissions: list[str] = Field(default_factory=list)


def _unauthorized(result: str, detail: str) -> HTTPException:
    JWT_ACCESS_VALIDATION_TOTAL.labels(service=SERVICE_NAME, result=result).inc()
    logger.warning("Access token rejected: {detail}", detail=detail)
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def decode_access_token(token: str) -> CurrentUser:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise _unauthorized("expired", "Token expired")
    except jwt.InvalidTokenError:
        raise _unauthorized("invalid", "Invalid token")

    JWT_ACCESS_VALIDATION_TOTAL.labels(service=SERVICE_NAME, result="success").inc()
    return CurrentUser(
        id=payload.get("id"),
        name=payload.get("sub"),
        role_id=payload.get("role_id"),
        role_name=payload.get("role_name"),
        permissions=payload.get("permissions") or [],
    )


def authentication_get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> CurrentUser:
    user = decode_access_token(credentials.credentials)
    logger.debug("Request authenticated as user_id={id}, role={role}", id=user.id, role=user.role_name)
    return user


def permission_required(required_permission: str):
    def _checker(user: CurrentUser = Depends(authentication_get_current_user)) -> CurrentUser:
        granted = required_permission in user.permissions
        PERMISSION_CHECKS_TOTAL.labels(
            service=SERVICE_NAME,
            permission=required_permission,
            result="granted" if granted else "denied",
        ).inc()

        if not granted:
            logger.warning(
                "user_id={id} lacks permission '{perm}'",
                id=user.id,
                perm=required_permission,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission '{required_permission}' required",
            )
        return user

    return _checker

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from eiga.core.database import get_db
from eiga.core.errors import CoreError, ErrorKind
from eiga.core.security import decode_token
from eiga.models.user import User

security = HTTPBearer(auto_error=False)


class Identity(BaseModel):
    """Opaque caller identity handed to the services."""

    id: int
    username: str
    role: str = "member"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _token_from_request(request: Request, creds: HTTPAuthorizationCredentials | None) -> str | None:
    if creds is not None:
        return creds.credentials
    return request.cookies.get("access_token")


def get_current_user_optional(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> Identity | None:
    # No token -> anonymous (no 401)
    token = _token_from_request(request, creds)
    if not token:
        return None

    payload = decode_token(token, request.app.state.settings)
    if payload is None or payload.get("purpose") == "magic":
        return None
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return None

    user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    return Identity(id=user.id, username=user.username, role=user.role)


def get_current_user(identity: Identity | None = Depends(get_current_user_optional)) -> Identity:
    if identity is None:
        raise CoreError(ErrorKind.UNAUTHORIZED)
    return identity


def require_admin(identity: Identity = Depends(get_current_user)) -> Identity:
    if not identity.is_admin:
        raise CoreError(ErrorKind.FORBIDDEN)
    return identity

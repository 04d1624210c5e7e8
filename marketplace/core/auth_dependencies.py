from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from marketplace.core.database import get_db
from marketplace.core.security import JWT_ALGORITHM, SECRET_KEY
from marketplace.models.identity import User
from shared.logging import remember_actor

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


class TokenPayload(BaseModel):
    """Claims issued by the identity provider. ``role`` is informative; the stored role wins."""

    sub: UUID
    company_id: Optional[UUID] = None
    role: Optional[str] = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> TokenPayload:
    try:
        return TokenPayload(**jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM]))
    except (JWTError, ValidationError):
        raise _unauthorized("Invalid credentials")


def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token to the acting ``User`` row."""
    claims = decode_token(token)
    user = db.get(User, claims.sub)
    if user is None:
        raise _unauthorized("Unknown user")
    # tokens issued before a company move carry the old company
    if user.company_id != claims.company_id:
        raise _unauthorized("Token company does not match the user's company")

    remember_actor(request, user.id, user.company_id)
    return user

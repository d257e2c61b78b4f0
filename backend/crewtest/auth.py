"""
Acting-identity dependencies.

Login is handled upstream; requests reach this service carrying the user id
in the X-User-ID header.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from crewtest.database import get_db
from crewtest.exceptions import Forbidden, Unauthenticated
from crewtest.models.user import User


def get_current_user(
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> User:
    if not x_user_id:
        raise Unauthenticated("Missing X-User-ID header")
    user = db.query(User).filter(User.id == x_user_id).first()
    if not user:
        raise Unauthenticated("Unknown user", user_id=x_user_id)
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise Forbidden("Administrator access required", user_id=user.id)
    return user

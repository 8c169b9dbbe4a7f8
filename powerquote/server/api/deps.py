from contextlib import contextmanager

from fastapi import Depends, Header, HTTPException
from sqlmodel import Session

from powerquote.core.errors import ServiceError
from powerquote.core.roles import RequestContext, normalize_role
from powerquote.server.db.session import get_session
from powerquote.server.models import Profile


# ==============================
# CALLER IDENTITY
# ==============================

USER_HEADER_NAME = "X-POWERQUOTE-USER"


def get_context(
    x_powerquote_user: str = Header(None),
    session: Session = Depends(get_session),
) -> RequestContext:
    """Resolves the calling profile from the X-POWERQUOTE-USER header."""
    if not x_powerquote_user:
        raise HTTPException(status_code=401, detail=f"Missing {USER_HEADER_NAME} header")

    profile = session.get(Profile, x_powerquote_user)
    if profile is None or not profile.is_active:
        raise HTTPException(status_code=403, detail="Profile not found or inactive")

    return RequestContext(
        user_id=profile.id,
        role=normalize_role(profile.role),
        email=profile.email,
        full_name=profile.full_name,
    )


# ==============================
# ERRORS
# ==============================

@contextmanager
def http_errors():
    """Turns service layer errors into HTTP errors with the same status."""
    try:
        yield
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e

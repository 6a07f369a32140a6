"""
Session identity for owner-facing and company-facing routes.
The login flow lives outside this service; it only reads the signed session
cookie it leaves behind.
"""
from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from lastmile.database import get_db
from lastmile.models.account import CompanyProfile, User


def _session_user(request: Request, db: Session) -> User | None:
    session_user_id = request.session.get("user_id")
    if not session_user_id:
        return None
    return db.query(User).filter(User.id == session_user_id).first()


def require_session_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """Raises 401 when there is no session user."""
    user = _session_user(request, db)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"status": "error", "message": "auth_required"},
        )
    return user


def require_company_profile(
    user: User = Depends(require_session_user),
    db: Session = Depends(get_db),
) -> CompanyProfile:
    """Session user must own a company profile; 403 otherwise."""
    profile = db.query(CompanyProfile).filter(CompanyProfile.user_id == user.id).first()
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"status": "error", "message": "company_profile_required"},
        )
    return profile

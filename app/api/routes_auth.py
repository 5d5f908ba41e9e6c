# app/api/routes_auth.py

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.security import create_access_token
from app.crud import user as crud_user
from app.db.deps import get_current_user, get_db, get_token_payload
from app.models.user import User
from app.schemas.common import MessageResponse
from app.schemas.user import SigninRequest, SignupRequest, TokenResponse, UserOut

logger = logging.getLogger(__name__)

router = APIRouter()


def _token_for(user: User) -> dict:
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"access_token": token, "token_type": "bearer", "user": user}


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def signup(data: SignupRequest, db: Session = Depends(get_db)):
    """Register a buyer or seller and return a session token."""
    user = crud_user.create_user(db, data)
    return _token_for(user)


@router.post("/signin", response_model=TokenResponse)
def signin(data: SigninRequest, db: Session = Depends(get_db)):
    user = crud_user.authenticate(db, data.email, data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is deactivated")
    logger.info(f"User {user.id} signed in")
    return _token_for(user)


@router.post("/signout", response_model=MessageResponse)
def signout(payload: dict = Depends(get_token_payload), db: Session = Depends(get_db)):
    expires_at = None
    if payload.get("exp"):
        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc).replace(tzinfo=None)
    crud_user.revoke_token(db, payload["jti"], int(payload["sub"]), expires_at)
    return {"message": "Signed out"}


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user

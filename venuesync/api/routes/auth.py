from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from venuesync.core.deps import get_current_user, get_db
from venuesync.core.security import create_access_token
from venuesync.models.user import User
from venuesync.schemas.auth import LoginRequest, MeResponse, TokenResponse
from venuesync.services.audit_service import client_info
from venuesync.services.auth_service import authenticate

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    ip, ua = client_info(request)
    user = authenticate(db, email=str(payload.email), password=payload.password, ip=ip, user_agent=ua)
    return TokenResponse(access_token=create_access_token(user.id))


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return MeResponse(user_id=user.id, email=user.email, name=user.name)

from fastapi import APIRouter, Depends, HTTPException, Body

from ..models.models import User
from ..schemas.users import LoginRequest, TokenResponse, UserResponse
from ..services.errors import parse_input
from ..services.users import UserService
from ..deps import get_user_service
from .security import create_access_token, get_current_user
from ..logging import structlog


log = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(payload: dict = Body(...), users: UserService = Depends(get_user_service)):
    req = parse_input(LoginRequest, payload)
    user = users.authenticate(req.pin)
    if not user:
        log.info("login_failed")
        raise HTTPException(status_code=401, detail="Invalid PIN")
    access = create_access_token(user.id, roles=list(user.roles or []), is_admin=user.is_admin)
    log.info("login", user_id=user.id, initials=user.initials)
    return TokenResponse(access_token=access, user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return user

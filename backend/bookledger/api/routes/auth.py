import json
import logging
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from bookledger.api.deps import get_current_user, log_action
from bookledger.core.security import create_access_token, verify_password
from bookledger.db.session import get_db
from bookledger.models.user import User
from bookledger.schemas.auth import LoginRequest, TokenResponse
from bookledger.schemas.user import UserRead


logger = logging.getLogger(__name__)
router = APIRouter()


async def parse_request_payload(request: Request) -> dict:
    """Accept JSON bodies as well as the form posts sent by the OAuth2 password flow."""
    content_type = (request.headers.get("content-type") or "").split(";")[0].strip().lower()

    if content_type == "application/json":
        return await request.json()

    raw = (await request.body()).decode("utf-8", errors="ignore")
    if not raw:
        return {}

    if content_type in {"application/x-www-form-urlencoded", "text/plain", ""}:
        parsed = parse_qs(raw, keep_blank_values=True)
        return {key: values[0] if values else "" for key, values in parsed.items()}

    try:
        return json.loads(raw)
    except ValueError:
        return {}


@router.post("/login", response_model=TokenResponse)
async def login(request: Request, db: Session = Depends(get_db)) -> TokenResponse:
    payload_data = await parse_request_payload(request)
    # OAuth2PasswordRequestForm posts the email as "username".
    if "email" not in payload_data and "username" in payload_data:
        payload_data["email"] = payload_data["username"]
    try:
        payload = LoginRequest(**payload_data)
    except (TypeError, ValidationError):
        raise HTTPException(status_code=422, detail="Invalid credentials")

    email = payload.email.strip().lower()
    user = db.scalar(select(User).where(User.email == email))
    if not user or not user.is_active or not verify_password(payload.password, user.hashed_password):
        logger.warning("Failed login", extra={"email": email})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    token = create_access_token(subject=user.email, token_version=user.token_version)
    log_action(db, user.id, "login", "auth")
    return TokenResponse(access_token=token)


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)) -> UserRead:
    return UserRead(id=current_user.id, email=current_user.email, full_name=current_user.full_name)

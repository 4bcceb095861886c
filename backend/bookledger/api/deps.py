import logging

from fastapi import Depends, HTTPException, UploadFile, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bookledger.core.config import get_settings
from bookledger.core.security import decode_access_token
from bookledger.db.session import get_db
from bookledger.models.audit import AuditLog
from bookledger.models.user import User
from bookledger.services.receipts import validate_receipt


logger = logging.getLogger(__name__)
settings = get_settings()
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_v1_prefix}/auth/login")


def get_current_user(db: Session = Depends(get_db), token: str = Depends(oauth2_scheme)) -> User:
    claims = decode_access_token(token)
    if not claims:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user_email = claims.get("sub")
    token_version = int(claims.get("ver", 0))

    user = db.scalar(select(User).where(User.email == user_email))
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")
    if user.token_version != token_version:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired")
    return user


def log_action(db: Session, user_id: int, action: str, resource: str, detail: str = "") -> None:
    """Record an audit row after a committed write. The ledger row stands even if this fails."""
    db.add(AuditLog(user_id=user_id, action=action, resource=resource, detail=detail[:255]))
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Audit log write failed", exc_info=exc, extra={"action": action, "resource": resource})


async def read_receipt(receipt: UploadFile | None) -> tuple[bytes, str] | None:
    if receipt is None or not receipt.filename:
        return None
    content = await receipt.read()
    content_type = receipt.content_type or ""
    validate_receipt(content_type, len(content))
    return content, content_type

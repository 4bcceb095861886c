import logging

from sqlalchemy.orm import Session

from bookledger.core.config import get_settings
from bookledger.core.security import hash_password
from bookledger.models.user import User


logger = logging.getLogger(__name__)


def seed_initial_data(db: Session) -> None:
    settings = get_settings()
    if db.query(User).count() > 0:
        return
    if not settings.seed_owner_email or not settings.seed_owner_password:
        logger.warning("No users exist and no seed owner is configured")
        return

    db.add(
        User(
            email=settings.seed_owner_email.strip().lower(),
            full_name=settings.seed_owner_name,
            hashed_password=hash_password(settings.seed_owner_password),
        )
    )
    db.commit()
    logger.info("Seeded owner account", extra={"email": settings.seed_owner_email})

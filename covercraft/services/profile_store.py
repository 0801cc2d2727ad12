"""
Profile store: repository over the profiles and generation_logs tables.

Critical-path methods raise on database errors. Best-effort writes (usage
counter, generation logs, resume cache) return a falsy value instead and log
the failure, so they never mask the primary response.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from covercraft.db.models.generation_log import GenerationLog
from covercraft.db.models.profile import Profile

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProfileStore:
    """CRUD over a single user's profile row and its generation logs."""

    def __init__(self, db: Session):
        self.db = db

    # ============================================
    # Reads
    # ============================================

    def get(self, user_id: str) -> Optional[Profile]:
        return self.db.query(Profile).filter(Profile.id == user_id).first()

    def find_by_email(self, email: Optional[str]) -> Optional[Profile]:
        """Case-insensitive exact email match."""
        if not email:
            return None
        return (
            self.db.query(Profile)
            .filter(func.lower(Profile.email) == email.strip().lower())
            .first()
        )

    def find_by_customer_id(self, customer_id: Optional[str]) -> Optional[Profile]:
        if not customer_id:
            return None
        return self.db.query(Profile).filter(Profile.stripe_customer_id == customer_id).first()

    def find_by_subscription_id(self, subscription_id: Optional[str]) -> Optional[Profile]:
        if not subscription_id:
            return None
        return self.db.query(Profile).filter(Profile.stripe_subscription_id == subscription_id).first()

    # ============================================
    # Writes
    # ============================================

    def ensure(self, user_id: str, email: Optional[str] = None) -> Profile:
        """
        Return the user's profile, creating it on first touch.

        Idempotent: an existing row is only touched to fill in a missing email.
        """
        profile = self.get(user_id)
        if profile is None:
            profile = Profile(
                id=user_id,
                email=email,
                is_pro=False,
                subscription_status="none",
                generations_used=0,
                updated_at=utcnow(),
            )
            self.db.add(profile)
            try:
                self.db.commit()
            except IntegrityError:
                # Concurrent first touch created the row first
                self.db.rollback()
                profile = self.get(user_id)
                if profile is None:
                    raise
            else:
                self.db.refresh(profile)
                logger.info(f"Profile created: user_id={user_id}")
                return profile

        if email and not profile.email:
            profile.email = email
            self.db.commit()
            self.db.refresh(profile)
        return profile

    def update(self, profile: Profile, values: Dict[str, Any]) -> Profile:
        """Apply column values and bump updated_at."""
        for key, value in values.items():
            setattr(profile, key, value)
        profile.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(profile)
        return profile

    def increment_generations(self, user_id: str) -> Optional[int]:
        """
        Atomically add one to generations_used.

        Returns:
            The new counter value, or None if the write failed
        """
        try:
            self.db.execute(
                update(Profile)
                .where(Profile.id == user_id)
                .values(generations_used=Profile.generations_used + 1, updated_at=utcnow())
            )
            self.db.commit()
            new_count = self.db.query(Profile.generations_used).filter(Profile.id == user_id).scalar()
            self.db.expire_all()
            return new_count
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to increment generations: user_id={user_id}, error={e}")
            return None

    def log_generation(
        self,
        user_id: str,
        user_email: Optional[str],
        success: bool,
        generations_at_request: int,
        error_message: Optional[str] = None,
    ) -> bool:
        """Append a generation log row. Never raises."""
        try:
            self.db.add(GenerationLog(
                user_id=user_id,
                user_email=user_email or "",
                success=success,
                generations_at_request=generations_at_request,
                error_message=error_message,
            ))
            self.db.commit()
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Failed to write generation log: user_id={user_id}, error={e}")
            return False

    def save_resume_summary(self, user_id: str, resume_hash: str, summary: str) -> bool:
        """Cache the resume fingerprint and summary. Never raises."""
        try:
            now = utcnow()
            self.db.execute(
                update(Profile)
                .where(Profile.id == user_id)
                .values(
                    resume_hash=resume_hash,
                    resume_summary=summary,
                    resume_updated_at=now,
                    updated_at=now,
                )
            )
            self.db.commit()
            self.db.expire_all()
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Failed to cache resume summary: user_id={user_id}, error={e}")
            return False

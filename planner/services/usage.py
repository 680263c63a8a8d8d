"""
Daily AI chat quota per user.

The counter resets at the next midnight (UTC) after the window expires. Admins
are counted like everybody else but never blocked.
"""

import logging
from datetime import datetime, time, timedelta, timezone

from sqlalchemy.orm import Session

from planner.config import get_settings
from planner.errors import QuotaExceeded
from planner.models import User, as_utc

logger = logging.getLogger(__name__)


def next_midnight(now: datetime) -> datetime:
    return datetime.combine(now.date() + timedelta(days=1), time.min, tzinfo=timezone.utc)


def consume_ai_quota(db: Session, user_id: str, now: datetime | None = None) -> int:
    """Count one chat request against the user's quota. Returns the new count.

    Raises QuotaExceeded when a non-admin user has used up today's requests.
    Unknown users are not counted.
    """
    now = now or datetime.now(timezone.utc)
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        return 0

    reset = as_utc(user.ai_usage_reset)
    if reset is None or now > reset:
        user.ai_usage_count = 0
        user.ai_usage_reset = next_midnight(now)

    limit = user.ai_usage_limit if user.ai_usage_limit is not None else get_settings().ai_usage_default_limit
    count = user.ai_usage_count or 0
    if not user.is_admin and count >= limit:
        db.commit()
        logger.info("AI usage limit reached for user %s (%d/%d)", user.id, count, limit)
        raise QuotaExceeded("AI usage limit reached. Please try again tomorrow.")

    user.ai_usage_count = count + 1
    db.commit()
    return user.ai_usage_count

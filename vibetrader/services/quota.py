"""Daily interaction quota (admission gate).

Read-then-increment: today's count is read first and the request is rejected
without mutation when it has reached the ceiling. Otherwise the counter is
upsert-incremented and the post-increment count only feeds response metadata.
Two concurrent requests can both pass the read and both increment, so a
counter may briefly reach ceiling + 1.
"""
import sqlite3
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, Dict, Any
from vibetrader.core.config import get_settings
from vibetrader.core.logging import get_logger
from vibetrader.core.time import utc_today, next_utc_midnight_iso
from vibetrader.db.repo.quota_repo import QuotaRepo

logger = get_logger(__name__)

IDENTITY_USER = "user"
IDENTITY_IP = "ip"


@dataclass
class QuotaMetadata:
    """Machine-readable quota state attached to gated responses."""
    limit: int
    remaining: int
    used: int
    resets_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "limit": self.limit,
            "remaining": self.remaining,
            "used": self.used,
            "resetsAt": self.resets_at,
        }

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": self.resets_at,
        }


@dataclass
class AdmissionResult:
    """Outcome of one admission check."""
    admitted: bool
    count: int
    ceiling: int
    remaining: int
    is_limited: bool = False
    degraded: bool = False
    metadata: Optional[QuotaMetadata] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["metadata"] = self.metadata.to_dict() if self.metadata else None
        return data


def exhausted_message(identity_class: str, ceiling: int) -> str:
    if identity_class == IDENTITY_USER:
        return f"You have used all {ceiling} interactions for today. Resets at midnight UTC."
    user_ceiling = get_settings().user_daily_limit
    return (
        f"You have used all {ceiling} free interactions. "
        f"Sign in for {user_ceiling} interactions per day!"
    )


class QuotaGate:
    """Per-identity daily quota backed by the rate_limits table."""

    def __init__(self, repo: Optional[QuotaRepo] = None, user_limit: Optional[int] = None,
                 anon_limit: Optional[int] = None):
        settings = get_settings()
        self.repo = repo or QuotaRepo()
        self.user_limit = user_limit if user_limit is not None else settings.user_daily_limit
        self.anon_limit = anon_limit if anon_limit is not None else settings.anon_daily_limit

    def ceiling_for(self, identity_class: str) -> int:
        return self.user_limit if identity_class == IDENTITY_USER else self.anon_limit

    def check_and_admit(self, identity: str, identity_class: str,
                        now: Optional[datetime] = None) -> AdmissionResult:
        """Admit or reject one gated call, incrementing the counter on admission.

        A datastore failure admits the request ungated (degraded=True).
        """
        ceiling = self.ceiling_for(identity_class)
        today = utc_today(now)
        resets_at = next_utc_midnight_iso(now)

        try:
            count = self.repo.get_count(identity, today)
            if count >= ceiling:
                logger.info(
                    "Quota exhausted for %s %s (%d/%d)",
                    identity_class, identity, count, ceiling
                )
                return AdmissionResult(
                    admitted=False,
                    count=count,
                    ceiling=ceiling,
                    remaining=0,
                    is_limited=True,
                    metadata=QuotaMetadata(limit=ceiling, remaining=0, used=count, resets_at=resets_at),
                )

            count = self.repo.increment(identity, identity_class, today)
        except sqlite3.Error as e:
            logger.warning(f"Quota store unavailable, admitting {identity} ungated: {e}")
            return AdmissionResult(admitted=True, count=0, ceiling=ceiling, remaining=ceiling, degraded=True)

        remaining = max(0, ceiling - count)
        logger.info(
            "Quota: %s %s - %d/%d (%d remaining)",
            identity_class, identity, count, ceiling, remaining
        )
        return AdmissionResult(
            admitted=True,
            count=count,
            ceiling=ceiling,
            remaining=remaining,
            is_limited=count > ceiling,
            metadata=QuotaMetadata(limit=ceiling, remaining=remaining, used=count, resets_at=resets_at),
        )

    def reset(self, identity: str, now: Optional[datetime] = None) -> int:
        """Delete today's counter row for an identity. Returns rows removed."""
        removed = self.repo.delete(identity, utc_today(now))
        logger.info(f"Quota reset for {identity} ({removed} rows)")
        return removed

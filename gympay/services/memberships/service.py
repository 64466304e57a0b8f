import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from gympay.models.membership import Membership

logger = logging.getLogger(__name__)


class MembershipService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, membership_id: str) -> Membership | None:
        return self.db.query(Membership).filter(Membership.id == membership_id).one_or_none()

    def activate(self, membership_id: str, transaction_id: str) -> Membership | None:
        """
        Activate a membership paid by transaction_id.
        Idempotent: a membership already activated by the same transaction is returned unchanged.
        Returns None when the membership does not exist.
        """
        membership = (
            self.db.query(Membership)
            .filter(Membership.id == membership_id)
            .with_for_update()
            .one_or_none()
        )
        if not membership:
            logger.warning(
                "membership_not_found",
                extra={"membership_id": membership_id, "transaction_id": transaction_id},
            )
            return None
        if membership.status == "active" and membership.transaction_id == transaction_id:
            return membership

        now = datetime.now(timezone.utc)
        membership.status = "active"
        membership.start_date = now
        membership.end_date = now + timedelta(days=membership.duration_days or 30)
        membership.transaction_id = transaction_id
        self.db.add(membership)
        self.db.flush()
        logger.info(
            "membership_activated",
            extra={"membership_id": membership.id, "transaction_id": transaction_id, "user_id": membership.user_id},
        )
        return membership

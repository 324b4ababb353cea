"""
DB-backed subscription service using async SQLAlchemy.

This is the subscription collaborator of the notification core:
- add_subscription    -> INSERT or 409 on duplicate (chat_id, name)
- remove_subscription -> DELETE by (chat_id, name)
- update_filters      -> UPDATE date_filter / reference_filter
- list_active         -> SELECT ... WHERE court = ? (feeds the SubscriptionIndex)
- list_by_chat        -> SELECT ... WHERE chat_id = ?

The core only reads subscriptions; the single write it performs (flipping
confirmation_sent) lives in CourtRegistry.commit_pass.
"""

from typing import Optional, List, Dict, Any

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.db_models import Subscription as SubscriptionRow
from models.session import Subscription
import logging

logger = logging.getLogger(__name__)


class SubscriptionDBService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_subscription(
        self,
        chat_id: int,
        court: str,
        name: str,
        reference_filter: str = "",
        date_filter: str = "*",
    ) -> Dict[str, Any]:
        """
        Insert a subscription row. If (chat_id, name) is taken we return a
        409-style response; the UNIQUE constraint backs the pre-check.
        """
        try:
            stmt = (
                select(SubscriptionRow)
                .where(SubscriptionRow.chat_id == chat_id)
                .where(SubscriptionRow.name == name)
            )
            existing = (await self.session.execute(stmt)).scalar_one_or_none()
            if existing:
                logger.info("DB duplicate subscription: %s:%s", chat_id, name)
                return {
                    "error": "Subscription already exists",
                    "status_code": 409,
                    "data": self._to_dict(existing),
                }

            row = SubscriptionRow(
                chat_id=chat_id,
                court=court,
                name=name,
                confirmation_sent=0,
                date_filter=date_filter,
                reference_filter=reference_filter,
            )
            self.session.add(row)
            await self.session.commit()
            await self.session.refresh(row)
            return {
                "message": "Subscribed successfully",
                "subscription": self._to_dict(row),
                "status_code": 201,
            }
        except IntegrityError as ie:
            await self.session.rollback()
            logger.warning("IntegrityError on add_subscription (%s)", ie)
            return {"error": "Subscription already exists", "status_code": 409}
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("DB add_subscription error: %s", e)
            return {"error": "Internal error adding subscription", "status_code": 500}

    async def remove_subscription(self, chat_id: int, name: str) -> Dict[str, Any]:
        """Hard delete, the row disappears from the table."""
        try:
            result = await self.session.execute(
                delete(SubscriptionRow)
                .where(SubscriptionRow.chat_id == chat_id)
                .where(SubscriptionRow.name == name)
            )
            await self.session.commit()
            if not result.rowcount:
                return {"error": "Subscription not found", "status_code": 404}
            return {"message": "Unsubscribed successfully", "status_code": 200}
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("DB remove_subscription error: %s", e)
            return {"error": "Internal error removing subscription", "status_code": 500}

    async def update_filters(
        self,
        chat_id: int,
        name: str,
        date_filter: Optional[str] = None,
        reference_filter: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            row = await self._get_row(chat_id, name)
            if row is None:
                return {"error": "Subscription not found", "status_code": 404}
            if date_filter is not None:
                row.date_filter = date_filter
            if reference_filter is not None:
                row.reference_filter = reference_filter
            await self.session.commit()
            return {"message": "Subscription updated", "subscription": self._to_dict(row), "status_code": 200}
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("DB update_filters error: %s", e)
            return {"error": "Internal error updating subscription", "status_code": 500}

    async def get_subscription(self, subscription_id: int) -> Optional[Subscription]:
        row = await self.session.get(SubscriptionRow, subscription_id)
        return Subscription.model_validate(row) if row else None

    async def list_active(self, court: str) -> List[Subscription]:
        """
        All subscriptions bound to a court.

        Equivalent to:
        SELECT * FROM subscriptions WHERE court = ?
        """
        stmt = (
            select(SubscriptionRow)
            .where(SubscriptionRow.court == court)
            .order_by(SubscriptionRow.subscription_id)
        )
        result = await self.session.execute(stmt)
        return [Subscription.model_validate(r) for r in result.scalars().all()]

    async def list_by_chat(self, chat_id: int) -> List[Dict[str, Any]]:
        stmt = (
            select(SubscriptionRow)
            .where(SubscriptionRow.chat_id == chat_id)
            .order_by(SubscriptionRow.name)
        )
        result = await self.session.execute(stmt)
        return [self._to_dict(s) for s in result.scalars().all()]

    async def _get_row(self, chat_id: int, name: str) -> Optional[SubscriptionRow]:
        stmt = (
            select(SubscriptionRow)
            .where(SubscriptionRow.chat_id == chat_id)
            .where(SubscriptionRow.name == name)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    @staticmethod
    def _to_dict(sub: SubscriptionRow) -> Dict[str, Any]:
        return {
            "subscription_id": sub.subscription_id,
            "chat_id": sub.chat_id,
            "court": sub.court,
            "name": sub.name,
            "date_filter": sub.date_filter,
            "reference_filter": sub.reference_filter,
            "confirmation_sent": bool(sub.confirmation_sent),
        }

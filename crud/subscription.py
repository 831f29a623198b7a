"""
SubscriptionRepository for database operations on Subscription and Invoice models
"""

from datetime import datetime
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from database_models import Subscription, Invoice, STATUS_TRIAL, INVOICE_PENDING, INVOICE_SENT
from services.pricing import Pricing
from utils.shared_utils import new_id


class SubscriptionRepository:
    """
    Repository class for subscription lifecycle persistence.
    Status changes go through `transition`, which only writes when the row
    still carries the status the caller read.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def get_latest_for_user(self, user_id: str) -> Optional[Subscription]:
        """
        Retrieve the user's current subscription (the most recently created one).

        Args:
            user_id: Owner ID

        Returns:
            Subscription object if the user has any, None otherwise
        """
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, subscription_id: str, refresh: bool = False) -> Optional[Subscription]:
        """
        Retrieve a subscription by ID.

        Args:
            subscription_id: Subscription ID
            refresh: Overwrite any copy already loaded in this session with the stored row
        """
        stmt = select(Subscription).where(Subscription.id == subscription_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create_subscription(
        self,
        user_id: str,
        plan: str,
        pricing: Pricing,
        trial_start: datetime,
        trial_end: datetime,
        lead_id: Optional[str] = None,
    ) -> Subscription:
        """
        Create a subscription in the trial state.

        Args:
            user_id: Owner ID
            plan: Plan tag, already validated by the caller
            pricing: Amounts computed at intake, stored as-is
            trial_start: Start of the trial window (also used as creation time)
            trial_end: End of the trial window
            lead_id: Originating lead, if any

        Returns:
            Created Subscription object
        """
        subscription = Subscription(
            id=new_id("sub"),
            user_id=user_id,
            lead_id=lead_id,
            plan=plan,
            base_price=pricing.base_price,
            requires_invoice=pricing.requires_invoice,
            tax_amount=pricing.tax_amount,
            total=pricing.total,
            status=STATUS_TRIAL,
            trial_start=trial_start,
            trial_end=trial_end,
            payment_verified=False,
            created_at=trial_start,
            updated_at=trial_start,
        )
        self.db.add(subscription)
        await self.db.flush()
        return subscription

    async def transition(
        self,
        subscription_id: str,
        expected_status: str,
        values: dict,
        now: datetime,
    ) -> bool:
        """
        Apply a status transition if the stored status still equals `expected_status`.

        Args:
            subscription_id: Subscription to update
            expected_status: Status observed when the decision was made
            values: Columns to set (must include the new status)
            now: Transition instant, written to updated_at

        Returns:
            True if the row was updated, False if another writer got there first
        """
        result = await self.db.execute(
            update(Subscription)
            .where(
                Subscription.id == subscription_id,
                Subscription.status == expected_status,
            )
            .values(**values, updated_at=now)
        )
        return result.rowcount == 1

    async def list_expired_trials(self, now: datetime) -> List[Subscription]:
        """Trials whose window closed strictly before `now`."""
        result = await self.db.execute(
            select(Subscription)
            .where(
                Subscription.status == STATUS_TRIAL,
                Subscription.trial_end < now,
            )
            .order_by(Subscription.trial_end)
        )
        return list(result.scalars().all())

    async def set_payment_verified(self, subscription_id: str, verified: bool, now: datetime) -> bool:
        result = await self.db.execute(
            update(Subscription)
            .where(Subscription.id == subscription_id)
            .values(payment_verified=verified, updated_at=now)
        )
        return result.rowcount == 1

    async def create_invoice(
        self,
        subscription: Subscription,
        tax_id: Optional[str],
        business_name: Optional[str],
    ) -> Invoice:
        """
        Create a pending invoice mirroring the subscription's amounts.
        """
        invoice = Invoice(
            id=new_id("inv"),
            subscription_id=subscription.id,
            user_id=subscription.user_id,
            tax_id=tax_id,
            business_name=business_name,
            subtotal=subscription.base_price,
            tax=subscription.tax_amount,
            total=subscription.total,
            status=INVOICE_PENDING,
            created_at=subscription.created_at,
        )
        self.db.add(invoice)
        await self.db.flush()
        return invoice

    async def get_invoice_for_subscription(self, subscription_id: str) -> Optional[Invoice]:
        result = await self.db.execute(
            select(Invoice).where(Invoice.subscription_id == subscription_id)
        )
        return result.scalar_one_or_none()

    async def mark_invoice_sent(self, invoice_id: str, now: datetime) -> None:
        await self.db.execute(
            update(Invoice)
            .where(Invoice.id == invoice_id, Invoice.status == INVOICE_PENDING)
            .values(status=INVOICE_SENT, sent_at=now)
        )

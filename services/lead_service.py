"""
Lead Service - sales lead intake, trial start and invoicing
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from crud.lead import LeadRepository
from crud.subscription import SubscriptionRepository
from database_models import Invoice, Lead, Subscription, User
from services.email_service import EmailService, EmailDeliveryError
from services.pricing import PricingConfig, compute_pricing
from services.subscription_service import SubscriptionService, DEFAULT_TRIAL_HOURS
from utils.shared_utils import utc_now

logger = logging.getLogger(__name__)


@dataclass
class IntakeResult:
    lead: Lead
    subscription: Subscription
    invoice: Optional[Invoice] = None
    invoice_sent: bool = False


class LeadService:
    """
    Turns a sales lead into a priced trial subscription for a user.
    """

    def __init__(
        self,
        db: AsyncSession,
        pricing_config: PricingConfig,
        email_service: Optional[EmailService] = None,
        clock: Callable[[], datetime] = utc_now,
        trial_hours: int = DEFAULT_TRIAL_HOURS,
    ):
        self.db = db
        self.pricing_config = pricing_config
        self.lead_repo = LeadRepository(db)
        self.subscription_repo = SubscriptionRepository(db)
        self.subscription_service = SubscriptionService(
            db, subscription_repo=self.subscription_repo, clock=clock, trial_hours=trial_hours
        )
        self.email_service = email_service or EmailService()
        self.clock = clock

    async def intake(self, lead_data: dict, user: User, now: Optional[datetime] = None) -> IntakeResult:
        """
        Record a lead and start a trial for its user.

        Args:
            lead_data: name, email, plan, requires_invoice and optional
                phone, company, tax_id, business_name. The plan must already
                be validated against the catalog.
            user: Account the subscription belongs to
            now: Intake instant (defaults to the service clock)

        Returns:
            IntakeResult with the lead, the trial subscription and the invoice if one was requested

        Raises:
            TrialUnavailableError: If the user already had a subscription
        """
        now = now or self.clock()
        await self.subscription_service.ensure_trial_available(user.id)
        requires_invoice = bool(lead_data.get("requires_invoice"))
        pricing = compute_pricing(lead_data["plan"], requires_invoice, self.pricing_config)

        lead = await self.lead_repo.create_lead({**lead_data, "user_id": user.id})
        subscription = await self.subscription_service.start_trial(
            user, pricing, now=now, lead_id=lead.id
        )
        result = IntakeResult(lead=lead, subscription=subscription)

        if requires_invoice:
            result.invoice = await self.subscription_repo.create_invoice(
                subscription,
                tax_id=lead_data.get("tax_id"),
                business_name=lead_data.get("business_name") or lead_data.get("company"),
            )
            result.invoice_sent = await self._deliver_invoice(lead, result.invoice, now)

        logger.info(
            f"Lead {lead.id} ({lead.plan}) -> subscription {subscription.id}, total {subscription.total}"
        )
        return result

    async def _deliver_invoice(self, lead: Lead, invoice: Invoice, now: datetime) -> bool:
        try:
            sent = await self.email_service.send_invoice_email(lead.email, lead.name, lead.plan, invoice)
        except EmailDeliveryError as e:
            logger.error(f"Failed to send invoice {invoice.id}: {e}")
            return False
        if sent:
            await self.subscription_repo.mark_invoice_sent(invoice.id, now)
        return sent

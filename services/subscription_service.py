"""
Subscription Service - trial/subscription lifecycle and feature gating
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from crud.subscription import SubscriptionRepository
from crud.user import UserRepository
from database_models import (
    Subscription,
    User,
    STATUS_TRIAL,
    STATUS_ACTIVE,
    STATUS_EXPIRED,
    STATUS_CANCELLED,
)
from services.pricing import Pricing
from utils.shared_utils import utc_now

logger = logging.getLogger(__name__)

DEFAULT_TRIAL_HOURS = 24

OUTCOME_ALLOWED = "allowed"
OUTCOME_DENIED = "denied"
OUTCOME_ERROR = "error"

MESSAGE_TRIAL_EXPIRED = "El periodo de prueba ha expirado. Contacta a ventas."
MESSAGE_SUBSCRIPTION_EXPIRED = "Tu suscripción ha expirado. Por favor renueva."
MESSAGE_NOT_ACTIVE = "Tu suscripción no está activa. Contacta a ventas."
MESSAGE_NOT_FOUND = "No se encontró una suscripción activa."
MESSAGE_VERIFY_FAILED = "No se pudo verificar la suscripción."
MESSAGE_TRIAL_UNAVAILABLE = "Ya tienes una suscripción registrada. Contacta a ventas."


class TrialUnavailableError(Exception):
    """Raised when a user who already has a subscription asks for another trial"""

    def __init__(self, subscription: Subscription):
        super().__init__(MESSAGE_TRIAL_UNAVAILABLE)
        self.subscription = subscription


@dataclass
class AccessDecision:
    """
    Result of asking whether a user may use gated features right now.

    `outcome` separates a real denial from a storage failure; both report
    allowed=False to the caller.
    """
    outcome: str
    status: Optional[str] = None
    message: Optional[str] = None
    trial_end: Optional[datetime] = None
    subscription_end: Optional[datetime] = None

    @property
    def allowed(self) -> bool:
        return self.outcome == OUTCOME_ALLOWED

    @property
    def is_error(self) -> bool:
        return self.outcome == OUTCOME_ERROR

    def to_dict(self) -> dict:
        data = {"allowed": self.allowed, "status": self.status}
        if self.message:
            data["message"] = self.message
        if self.trial_end is not None:
            data["trialEnd"] = self.trial_end.isoformat()
        if self.subscription_end is not None:
            data["subscriptionEnd"] = self.subscription_end.isoformat()
        return data


@dataclass
class SweepResult:
    processed_count: int = 0
    expired_count: int = 0
    activated_count: int = 0
    failed_count: int = 0


def add_one_year(moment: datetime) -> datetime:
    """
    Advance the calendar year. Feb 29 rolls forward to Mar 1.
    """
    try:
        return moment.replace(year=moment.year + 1)
    except ValueError:
        return moment.replace(year=moment.year + 1, month=3, day=1)


def resolve_trial_expiry(subscription: Subscription, now: datetime) -> Optional[dict]:
    """
    Transition rule for a trial whose window has closed.

    Shared by per-request evaluation and the periodic sweep.

    Args:
        subscription: Subscription currently in the trial state
        now: Current instant

    Returns:
        Column values for the transition, or None while the trial is still running
    """
    if subscription.status != STATUS_TRIAL or now <= subscription.trial_end:
        return None
    if subscription.payment_verified:
        return {
            "status": STATUS_ACTIVE,
            "subscription_start": now,
            "subscription_end": add_one_year(now),
        }
    return {"status": STATUS_EXPIRED}


class SubscriptionService:
    """
    Single authority for "may this user use gated functionality right now".
    Advances subscription state as a side effect of asking.
    """

    def __init__(
        self,
        db: AsyncSession,
        subscription_repo: Optional[SubscriptionRepository] = None,
        user_repo: Optional[UserRepository] = None,
        clock: Callable[[], datetime] = utc_now,
        trial_hours: int = DEFAULT_TRIAL_HOURS,
    ):
        """
        Initialize the subscription service.

        Args:
            db: AsyncSession instance for database operations
            subscription_repo: Repository for subscriptions (built from db if omitted)
            user_repo: Repository for users (built from db if omitted)
            clock: Source of the current instant when callers don't pass one
            trial_hours: Length of the trial window for new subscriptions
        """
        self.db = db
        self.subscription_repo = subscription_repo or SubscriptionRepository(db)
        self.user_repo = user_repo or UserRepository(db)
        self.clock = clock
        self.trial_hours = trial_hours

    async def start_trial(
        self,
        user: User,
        pricing: Pricing,
        now: Optional[datetime] = None,
        lead_id: Optional[str] = None,
    ) -> Subscription:
        """
        Create a trial subscription for a user and flag the user as in trial.

        Args:
            user: Owner of the new subscription
            pricing: Amounts computed at intake
            now: Creation instant (defaults to the service clock)
            lead_id: Originating lead, if any

        Returns:
            The new Subscription in the trial state

        Raises:
            TrialUnavailableError: If the user already has a subscription in any state
        """
        now = now or self.clock()
        await self.ensure_trial_available(user.id)
        subscription = await self.subscription_repo.create_subscription(
            user_id=user.id,
            plan=pricing.plan,
            pricing=pricing,
            trial_start=now,
            trial_end=now + timedelta(hours=self.trial_hours),
            lead_id=lead_id,
        )
        await self.user_repo.update_user(
            user, {"trial_active": True, "subscription_id": subscription.id}
        )
        logger.info(f"Started trial {subscription.id} for user {user.id} until {subscription.trial_end.isoformat()}")
        return subscription

    async def ensure_trial_available(self, user_id: str) -> None:
        """
        A user gets one trial. Any earlier subscription, including an expired
        or cancelled one, rules out another.
        """
        existing = await self.subscription_repo.get_latest_for_user(user_id)
        if existing is not None:
            logger.info(f"Refused new trial for user {user_id}: subscription {existing.id} is {existing.status}")
            raise TrialUnavailableError(existing)

    async def evaluate(self, user_id: str, now: Optional[datetime] = None) -> AccessDecision:
        """
        Decide whether the user may use gated features, applying at most one
        forward transition on their current subscription.

        Args:
            user_id: User to evaluate
            now: Current instant (defaults to the service clock)

        Returns:
            AccessDecision; storage failures come back with outcome "error"
        """
        now = now or self.clock()
        try:
            subscription = await self.subscription_repo.get_latest_for_user(user_id)
            if subscription is None:
                return AccessDecision(OUTCOME_DENIED, message=MESSAGE_NOT_FOUND)
            return await self._evaluate_subscription(subscription, now)
        except Exception as e:
            logger.error(f"Could not verify subscription for user {user_id}: {e}", exc_info=True)
            return AccessDecision(OUTCOME_ERROR, message=MESSAGE_VERIFY_FAILED)

    async def _evaluate_subscription(
        self,
        subscription: Subscription,
        now: datetime,
        allow_transition: bool = True,
    ) -> AccessDecision:
        if subscription.status == STATUS_TRIAL:
            values = resolve_trial_expiry(subscription, now)
            if values is None:
                return AccessDecision(
                    OUTCOME_ALLOWED,
                    status=STATUS_TRIAL,
                    trial_end=subscription.trial_end,
                )
        elif subscription.status == STATUS_ACTIVE:
            if subscription.subscription_end is None or now <= subscription.subscription_end:
                return AccessDecision(
                    OUTCOME_ALLOWED,
                    status=STATUS_ACTIVE,
                    subscription_end=subscription.subscription_end,
                )
            values = {"status": STATUS_EXPIRED}
        else:
            return AccessDecision(
                OUTCOME_DENIED,
                status=subscription.status,
                message=MESSAGE_NOT_ACTIVE,
            )

        if not allow_transition:
            logger.warning(f"Subscription {subscription.id} changed concurrently and still needs a transition")
            return AccessDecision(OUTCOME_ERROR, status=subscription.status, message=MESSAGE_VERIFY_FAILED)

        previous_status = subscription.status
        if not await self._apply_transition(subscription, values, now):
            # Another writer moved this row first; report whatever it holds now
            current = await self.subscription_repo.get_by_id(subscription.id, refresh=True)
            if current is None:
                return AccessDecision(OUTCOME_DENIED, message=MESSAGE_NOT_FOUND)
            return await self._evaluate_subscription(current, now, allow_transition=False)

        if values["status"] == STATUS_ACTIVE:
            return AccessDecision(
                OUTCOME_ALLOWED,
                status=STATUS_ACTIVE,
                subscription_end=values["subscription_end"],
            )
        message = MESSAGE_TRIAL_EXPIRED if previous_status == STATUS_TRIAL else MESSAGE_SUBSCRIPTION_EXPIRED
        return AccessDecision(OUTCOME_DENIED, status=STATUS_EXPIRED, message=message)

    async def _apply_transition(self, subscription: Subscription, values: dict, now: datetime) -> bool:
        """
        Write a transition guarded by the status that was read.
        Leaving the trial state also clears the owner's trial flag.
        """
        previous_status = subscription.status
        applied = await self.subscription_repo.transition(
            subscription.id, previous_status, values, now
        )
        if not applied:
            logger.info(f"Subscription {subscription.id} was no longer {previous_status}; transition skipped")
            return False

        if previous_status == STATUS_TRIAL:
            await self.user_repo.set_trial_active(subscription.user_id, False)
        logger.info(f"Subscription {subscription.id}: {previous_status} -> {values['status']}")
        return True

    async def sweep_expired_trials(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Apply the trial-expiry rule to every trial whose window closed before `now`.

        Args:
            now: Current instant (defaults to the service clock)

        A subscription whose transition fails is logged and skipped; its
        write is rolled back to a savepoint so the rest of the sweep commits.

        Returns:
            SweepResult with the number of subscriptions transitioned
        """
        now = now or self.clock()
        result = SweepResult()
        for subscription in await self.subscription_repo.list_expired_trials(now):
            values = resolve_trial_expiry(subscription, now)
            if values is None:
                continue
            subscription_id = subscription.id
            try:
                async with self.db.begin_nested():
                    applied = await self._apply_transition(subscription, values, now)
            except Exception as e:
                logger.error(f"Sweep skipped subscription {subscription_id}: {e}", exc_info=True)
                result.failed_count += 1
                continue
            if not applied:
                continue
            result.processed_count += 1
            if values["status"] == STATUS_ACTIVE:
                result.activated_count += 1
            else:
                result.expired_count += 1
        return result

    async def cancel(self, user_id: str, now: Optional[datetime] = None) -> Optional[Subscription]:
        """
        Cancel the user's current subscription if it is in trial or active.

        Returns:
            The cancelled Subscription, or None if there was nothing to cancel
        """
        now = now or self.clock()
        subscription = await self.subscription_repo.get_latest_for_user(user_id)
        if subscription is None or subscription.status not in (STATUS_TRIAL, STATUS_ACTIVE):
            return None
        if not await self._apply_transition(subscription, {"status": STATUS_CANCELLED}, now):
            return None
        return subscription

    async def verify_payment(self, subscription_id: str, now: Optional[datetime] = None) -> Optional[Subscription]:
        """
        Mark a subscription's payment as verified. The trial converts to
        active the next time it is evaluated after its window closes.
        """
        now = now or self.clock()
        if not await self.subscription_repo.set_payment_verified(subscription_id, True, now):
            return None
        logger.info(f"Payment verified for subscription {subscription_id}")
        return await self.subscription_repo.get_by_id(subscription_id, refresh=True)

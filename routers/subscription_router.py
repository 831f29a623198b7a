"""
Subscription Router - lead intake, subscription status and admin lifecycle operations
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user_id, get_subscription_service, evaluate_and_commit
from auth_utils import extract_user_id, issue_token
from backend.utils.responses import success_response, error_response
from config import settings
from crud.user import UserRepository
from database import get_db
from services.account_service import AccountService, AccountError
from services.lead_service import LeadService
from services.pricing import PricingConfig
from services.subscription_service import SubscriptionService, TrialUnavailableError
from utils.security_utils import validate_email, validate_tax_id, verify_admin_key
from utils.shared_utils import now_millis, log_endpoint_event

logger = logging.getLogger(__name__)

subscription_router = APIRouter(prefix="/api", tags=["subscriptions"])


class LeadRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    plan: str
    requires_invoice: bool = False
    tax_id: Optional[str] = None
    business_name: Optional[str] = None
    # Used to create an account when the lead is not signed in
    username: Optional[str] = None
    password: Optional[str] = None

    @field_validator("plan")
    @classmethod
    def plan_in_catalog(cls, value: str) -> str:
        if value not in settings.plan_prices:
            raise ValueError(f"Plan inválido. Opciones: {', '.join(sorted(settings.plan_prices))}")
        return value

    @field_validator("email")
    @classmethod
    def email_format(cls, value: str) -> str:
        if not validate_email(value):
            raise ValueError("Correo electrónico inválido")
        return value.lower()


def get_pricing_config() -> PricingConfig:
    return PricingConfig.from_settings(settings)


async def require_admin(x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key")) -> None:
    if not verify_admin_key(x_admin_key, settings.admin_api_key):
        raise HTTPException(status_code=403, detail="No autorizado")


@subscription_router.post("/leads")
async def create_lead(
    request: LeadRequest,
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db),
    pricing_config: PricingConfig = Depends(get_pricing_config),
):
    """
    Capture a sales lead and start its 24h trial.
    Signed-in callers get the trial on their account; otherwise an account
    is registered from username/password.
    """
    if request.requires_invoice and not validate_tax_id(request.tax_id or ""):
        return error_response("invalid_tax_id", status=400, message="RFC inválido para facturación")

    token = None
    user_id = extract_user_id(authorization)
    if user_id:
        user = await UserRepository(db).get_user_by_id(user_id)
        if not user:
            raise HTTPException(status_code=401, detail="No autorizado")
    else:
        try:
            registration = await AccountService(db).register(
                request.username, request.password, request.email
            )
        except AccountError as e:
            return error_response("registration_failed", status=e.status_code, message=e.message)
        user = registration.user
        token = issue_token(user.id, user.username, now_millis())

    lead_data = request.model_dump(exclude={"username", "password"})
    if lead_data.get("tax_id"):
        lead_data["tax_id"] = lead_data["tax_id"].strip().upper()

    try:
        result = await LeadService(
            db, pricing_config, trial_hours=settings.trial_hours
        ).intake(lead_data, user)
    except TrialUnavailableError as e:
        log_endpoint_event("/api/leads", user.id, "refused", {"status": e.subscription.status})
        return error_response(
            "trial_unavailable",
            status=409,
            message=str(e),
            data={"subscriptionId": e.subscription.id, "status": e.subscription.status},
        )
    subscription = result.subscription

    log_endpoint_event("/api/leads", user.id, "success", {"plan": subscription.plan, "total": subscription.total})
    data = {
        "leadId": result.lead.id,
        "userId": user.id,
        "subscriptionId": subscription.id,
        "plan": subscription.plan,
        "status": subscription.status,
        "basePrice": subscription.base_price,
        "taxAmount": subscription.tax_amount,
        "total": subscription.total,
        "trialEnd": subscription.trial_end,
        "invoiceId": result.invoice.id if result.invoice else None,
        "invoiceSent": result.invoice_sent,
    }
    if token:
        data["token"] = token
    return success_response(data=data, message="Periodo de prueba activado")


@subscription_router.get("/subscription/status")
async def subscription_status(
    user_id: str = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Evaluate the caller's subscription (may advance its state)"""
    decision = await evaluate_and_commit(service, user_id)
    if decision.is_error:
        return error_response("subscription_unverified", status=503, message=decision.message, data=decision.to_dict())
    return success_response(data=decision.to_dict())


@subscription_router.post("/subscription/cancel")
async def cancel_subscription(
    user_id: str = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
):
    subscription = await service.cancel(user_id)
    if subscription is None:
        return error_response("not_cancellable", status=409, message="No hay una suscripción activa para cancelar")
    return success_response(data={"subscriptionId": subscription.id, "status": subscription.status})


@subscription_router.post("/admin/subscriptions/{subscription_id}/verify-payment", dependencies=[Depends(require_admin)])
async def verify_payment(
    subscription_id: str,
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Record that the payment for a subscription was received"""
    subscription = await service.verify_payment(subscription_id)
    if subscription is None:
        return error_response("subscription_not_found", status=404, message="Suscripción no encontrada")
    return success_response(
        data={
            "subscriptionId": subscription.id,
            "status": subscription.status,
            "paymentVerified": subscription.payment_verified,
        }
    )


@subscription_router.post("/admin/sweep", dependencies=[Depends(require_admin)])
async def run_sweep(service: SubscriptionService = Depends(get_subscription_service)):
    """Run the expired-trial sweep now"""
    result = await service.sweep_expired_trials()
    return success_response(
        data={
            "processedCount": result.processed_count,
            "expiredCount": result.expired_count,
            "activatedCount": result.activated_count,
            "failedCount": result.failed_count,
        }
    )

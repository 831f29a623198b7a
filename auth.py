"""
Authentication routes and dependencies
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Header, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from database import get_db
from crud.user import UserRepository
from auth_utils import issue_token, extract_user_id
from services.account_service import AccountService, AccountError
from services.subscription_service import SubscriptionService, AccessDecision
from backend.utils.responses import success_response, error_response
from utils.shared_utils import now_millis, log_endpoint_event
from config import settings

logger = logging.getLogger(__name__)

UNAUTHORIZED_MESSAGE = "No autorizado"

# Create auth router
auth_router = APIRouter(prefix="/api", tags=["auth"])


# Request models
class RegisterRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    email: Optional[str] = None


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


@auth_router.post("/register")
async def register(request: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a new user account"""
    try:
        result = await AccountService(db).register(
            request.username, request.password, request.email
        )
    except AccountError as e:
        return error_response("registration_failed", status=e.status_code, message=e.message)

    user = result.user
    token = issue_token(user.id, user.username, now_millis())
    log_endpoint_event("/api/register", user.id, "success", {"email_sent": result.email_sent})

    return success_response(
        data={
            "token": token,
            "userId": user.id,
            "username": user.username,
            "emailSent": result.email_sent,
        },
        message="Usuario creado exitosamente",
    )


@auth_router.post("/login")
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login and get a session token"""
    try:
        user = await AccountService(db).login(request.username, request.password)
    except AccountError as e:
        return error_response("invalid_credentials", status=e.status_code, message=e.message)

    token = issue_token(user.id, user.username, now_millis())
    return success_response(
        data={
            "token": token,
            "userId": user.id,
            "username": user.username,
        }
    )


@auth_router.get("/verify-email/{token}")
async def verify_email(token: str, db: AsyncSession = Depends(get_db)):
    """Confirm an email address from the link sent at registration"""
    try:
        await AccountService(db).verify_email(token)
    except AccountError as e:
        return error_response("invalid_token", status=e.status_code, message=e.message)
    return success_response(message="Email verificado exitosamente")


# Dependency for protected routes
async def get_current_user_id(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> str:
    """
    Dependency returning the user id carried by the Bearer token.
    Raises 401 for a missing or malformed credential.
    """
    user_id = extract_user_id(authorization)
    if not user_id:
        raise HTTPException(status_code=401, detail=UNAUTHORIZED_MESSAGE)
    return user_id


def get_subscription_service(db: AsyncSession = Depends(get_db)) -> SubscriptionService:
    return SubscriptionService(db, trial_hours=settings.trial_hours)


async def evaluate_and_commit(service: SubscriptionService, user_id: str) -> AccessDecision:
    """
    Evaluate the user's subscription and persist any transition it made,
    so a denial raised afterwards does not roll the transition back.
    """
    decision = await service.evaluate(user_id)
    if decision.is_error:
        await service.db.rollback()
    else:
        await service.db.commit()
    return decision


async def require_active_subscription(
    user_id: str = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
) -> AccessDecision:
    """
    Dependency for gated routes: 403 with the reason when access is denied,
    503 when the subscription could not be verified.
    """
    decision = await evaluate_and_commit(service, user_id)
    if decision.is_error:
        raise HTTPException(status_code=503, detail=decision.to_dict())
    if not decision.allowed:
        log_endpoint_event("subscription_gate", user_id, "denied", {"status": decision.status})
        raise HTTPException(status_code=403, detail=decision.to_dict())
    return decision


@auth_router.get("/me")
async def get_current_user_info(
    user_id: str = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Get current user information and subscription state"""
    user = await UserRepository(service.db).get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=401, detail=UNAUTHORIZED_MESSAGE)

    decision = await evaluate_and_commit(service, user_id)
    return success_response(
        data={
            "userId": user.id,
            "username": user.username,
            "email": user.email,
            "emailVerified": user.email_verified,
            "trialActive": user.trial_active,
            "subscription": decision.to_dict(),
        }
    )

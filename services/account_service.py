"""
Account Service - registration, login and email verification
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from auth_utils import hash_password, verify_password
from crud.user import UserRepository
from database_models import User
from services.email_service import EmailService, EmailDeliveryError
from utils.shared_utils import generate_slug

logger = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


class AccountError(Exception):
    """Registration or login failure carrying a user-facing message and HTTP status"""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class RegistrationResult:
    user: User
    email_sent: bool = False


class AccountService:

    def __init__(self, db: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db
        self.user_repo = UserRepository(db)
        self.email_service = email_service or EmailService()

    async def register(self, username: str, password: str, email: Optional[str] = None) -> RegistrationResult:
        """
        Create an account and send the verification email when an address is given.

        Args:
            username: At least 3 characters, unique
            password: At least 6 characters
            email: Optional address to verify

        Returns:
            RegistrationResult with the new user

        Raises:
            AccountError: On missing fields, short values or a taken username
        """
        if not username or not password:
            raise AccountError("Usuario y contraseña son requeridos")
        if len(username) < MIN_USERNAME_LENGTH:
            raise AccountError("El usuario debe tener al menos 3 caracteres")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AccountError("La contraseña debe tener al menos 6 caracteres")

        if await self.user_repo.get_user_by_username(username):
            raise AccountError("El usuario ya existe", status_code=409)

        user = await self.user_repo.create_user({
            "username": username,
            "password_hash": hash_password(password),
            "email": email or None,
            "email_verification_token": generate_slug() if email else None,
        })

        email_sent = False
        if email:
            try:
                email_sent = await self.email_service.send_verification_email(
                    email, user.email_verification_token, username
                )
            except EmailDeliveryError as e:
                # Registration still succeeds without the email
                logger.error(f"Error sending verification email: {e}")

        return RegistrationResult(user=user, email_sent=email_sent)

    async def login(self, username: str, password: str) -> User:
        """
        Raises:
            AccountError: 401 for an unknown user or a wrong password
        """
        user = await self.user_repo.get_user_by_username(username or "")
        if not user or not verify_password(password or "", user.password_hash):
            raise AccountError("Credenciales inválidas", status_code=401)
        return user

    async def verify_email(self, token: str) -> User:
        """
        Raises:
            AccountError: If no account is waiting on this token
        """
        user = await self.user_repo.get_user_by_verification_token(token)
        if not user:
            raise AccountError("Token inválido o expirado")
        return await self.user_repo.mark_email_verified(user)

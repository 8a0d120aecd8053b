"""
Payment Service - grants premium after a completed Stripe Checkout session
"""
import asyncio
import logging
import time
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import stripe

from crud.user import UserRepository
from crud.premium import PremiumGrantRepository
from database_models import User, PremiumGrant
from models.premium import PremiumStatusSnapshot, VerificationResult
from models.session import SessionContext
from services.entitlement_service import EntitlementService
from backend.utils.errors import (
    NotSignedInError,
    PaymentFinalizationError,
    UserNotFoundError,
)
from utils.saga import Saga, SagaStepFailed
from utils.shared_utils import utc_now_iso
from config.settings import settings

logger = logging.getLogger(__name__)

COMPLETE_CHECKOUT_STATUS = "complete"
PAID_STATUSES = {"paid", "no_payment_required"}


class PaymentService:
    """
    Finalizes a checkout by confirming it with Stripe, writing the user flag,
    upserting the grant and verifying the result.

    The user record and the grant record have no transactional link, so every
    step commits on its own and verification re-reads the grant table to
    confirm the writes took effect.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)
        self.grant_repo = PremiumGrantRepository(db)
        self.entitlement_service = EntitlementService(db, self.user_repo, self.grant_repo)

    async def handle_successful_payment(
        self,
        session: Optional[SessionContext],
        checkout_session_id: str,
    ) -> dict:
        """
        Grant premium for a completed checkout session.

        Args:
            session: The signed-in user returning from checkout
            checkout_session_id: Stripe Checkout session id from the success URL

        Returns:
            {"user": User, "snapshot": PremiumStatusSnapshot, "verification": VerificationResult, "journal": list}

        Raises:
            NotSignedInError: No signed-in user
            ValueError: Empty checkout session id
            UserNotFoundError: The signed-in user's record is gone
            PaymentFinalizationError: A step failed; earlier steps stay applied.
                Nothing is written when the checkout cannot be confirmed.
        """
        if session is None:
            raise NotSignedInError("No authenticated user found during payment completion")
        if not checkout_session_id:
            raise ValueError("Checkout session id is required")

        saga = Saga(name=f"payment:{session.user_id}:{checkout_session_id}")
        try:
            await saga.run("confirm_checkout", lambda: self._confirm_checkout(session, checkout_session_id))
            user = await saga.run("mark_user_premium", lambda: self._mark_user_premium(session, checkout_session_id))
            grant = await saga.run("upsert_premium_grant", lambda: self._upsert_premium_grant(session, user))
            verification = await saga.run("verify_premium_status", lambda: self._verify(session))
            user = await saga.run("refresh_user", lambda: self._refresh_user(session))
        except SagaStepFailed as e:
            if isinstance(e.cause, UserNotFoundError):
                raise e.cause
            logger.error(f"Error processing payment for user {session.user_id}: {e.cause}")
            raise PaymentFinalizationError(
                str(e.cause), step=e.step.name, journal=saga.journal()
            ) from e.cause

        snapshot = PremiumStatusSnapshot(
            is_premium=True,
            timestamp=int(time.time() * 1000),
            user_id=session.user_id,
            session_id=checkout_session_id,
        )
        logger.info(
            f"Premium granted to user {session.user_id} (grant {grant.id}, session {checkout_session_id})"
        )
        return {
            "user": user,
            "snapshot": snapshot,
            "verification": verification,
            "journal": saga.journal(),
        }

    async def _confirm_checkout(self, session: SessionContext, checkout_session_id: str) -> None:
        """
        The checkout session must exist, be paid, and have been opened by this user
        (`client_reference_id` is set to the user id when checkout is created).
        """
        checkout = await asyncio.to_thread(
            stripe.checkout.Session.retrieve, checkout_session_id, api_key=settings.stripe_secret_key
        )
        status = getattr(checkout, "status", None)
        payment_status = getattr(checkout, "payment_status", None)
        if status != COMPLETE_CHECKOUT_STATUS and payment_status not in PAID_STATUSES:
            raise PaymentFinalizationError(
                f"Checkout session {checkout_session_id} is not complete (status={status}, payment_status={payment_status})"
            )
        if getattr(checkout, "client_reference_id", None) != str(session.user_id):
            raise PaymentFinalizationError(
                f"Checkout session {checkout_session_id} does not belong to user {session.user_id}"
            )

    async def _load_user(self, session: SessionContext) -> User:
        user = await self.user_repo.get_user_by_id(session.user_id)
        if user is None:
            raise UserNotFoundError("User document not found")
        return user

    async def _mark_user_premium(self, session: SessionContext, checkout_session_id: str) -> User:
        user = await self._load_user(session)
        now = utc_now_iso()
        user = await self.user_repo.update_user(user, {
            "is_premium": True,
            "premium_since": now,
            "last_verified": now,
            "stripe_session_id": checkout_session_id,
            "stripe_subscription_active": True,
        })
        await self.db.commit()
        return user

    async def _upsert_premium_grant(self, session: SessionContext, user: User) -> PremiumGrant:
        email = (user.email or session.email).lower()
        if not email:
            raise ValueError("Email is required")

        grant = await self.grant_repo.get_by_email(email)
        if grant is not None:
            grant = await self.grant_repo.update_grant(grant, {
                "active": True,
                "stripe_subscription_active": True,
                "user_id": user.id,
            })
        else:
            grant = await self.grant_repo.create_grant(email, user_id=user.id)

        await self.user_repo.update_user(user, {"premium_grant_id": grant.id})
        await self.db.commit()
        return grant

    async def _verify(self, session: SessionContext) -> VerificationResult:
        result = await self.entitlement_service.verify_premium_status(session.user_id)
        if not result.is_premium:
            raise PaymentFinalizationError("Premium status verification failed after payment")
        return result

    async def _refresh_user(self, session: SessionContext) -> User:
        user = await self._load_user(session)
        await self.db.refresh(user)
        return user

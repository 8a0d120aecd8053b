"""
Billing Service - Stripe Checkout and subscription webhooks
"""

import asyncio
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
import stripe

from crud.premium import PremiumGrantRepository
from models.session import SessionContext
from config.settings import settings

logger = logging.getLogger(__name__)

# Initialize Stripe client
if settings.stripe_secret_key:
    stripe.api_key = settings.stripe_secret_key
else:
    logger.warning("STRIPE_SECRET_KEY is not set. Stripe functionality will be unavailable.")

# Subscription events after which the grant can no longer be trusted
SUBSCRIPTION_ENDED_EVENTS = {
    "customer.subscription.deleted",
}
SUBSCRIPTION_UPDATED_EVENT = "customer.subscription.updated"
INACTIVE_SUBSCRIPTION_STATUSES = {"canceled", "unpaid", "incomplete_expired"}


def build_return_urls(origin: str) -> dict:
    """
    Success/cancel URLs for the current deployment origin.
    Stripe substitutes {CHECKOUT_SESSION_ID} on redirect.
    """
    origin = origin.rstrip("/")
    return {
        "success_url": f"{origin}/success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{origin}/",
    }


class BillingService:
    """
    Service class for handling billing-related business logic.
    Checkout never changes local state; premium is granted by PaymentService
    after the user returns with a session id.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the billing service.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def create_checkout_session(self, session: Optional[SessionContext], origin: str):
        """
        Create a Stripe Checkout session for the premium subscription.

        Args:
            session: Signed-in user; required
            origin: Scheme + host the browser is on, used for return URLs

        Returns:
            Normalized response: {"data": url, "is_error": False} or {"error": str(e), "is_error": True}
        """
        if session is None:
            return {"error": "Must be signed in to upgrade to premium", "is_error": True}

        if not settings.stripe_secret_key:
            logger.error("STRIPE_SECRET_KEY is not set. Cannot create checkout session.")
            return {"error": "STRIPE_SECRET_KEY is not set. Cannot create checkout session.", "is_error": True}

        if not settings.stripe_price_id:
            logger.error("STRIPE_PRICE_ID is not set. Cannot create checkout session.")
            return {"error": "STRIPE_PRICE_ID is not set. Cannot create checkout session.", "is_error": True}

        try:
            urls = build_return_urls(origin)
            checkout_session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=settings.stripe_secret_key,
                payment_method_types=["card"],
                line_items=[{
                    "price": settings.stripe_price_id,
                    "quantity": 1,
                }],
                mode="subscription",
                success_url=urls["success_url"],
                cancel_url=urls["cancel_url"],
                client_reference_id=str(session.user_id),
                customer_email=session.normalized_email,
                metadata={
                    "user_id": str(session.user_id),
                    "email": session.normalized_email,
                },
            )
            logger.info(f"Created checkout session {checkout_session.id} for user {session.user_id}")
            return {"data": checkout_session.url, "is_error": False}
        except Exception as e:
            logger.error(f"Failed to create checkout session: {e}", exc_info=True)
            return {"error": str(e), "is_error": True}

    async def process_webhook(self, event: stripe.Event):
        """
        Process a verified Stripe webhook event.
        Ended subscriptions deactivate the grant for the customer's email; the
        next verification (poll tick, login, gated request) flips the cached flag.

        Args:
            event: Verified Stripe Event object (from webhook signature verification)

        Returns:
            Normalized response: {"data": changed_rows, "is_error": False} or {"error": str(e), "is_error": True}
        """
        try:
            event_type = event["type"]
            logger.info(f"Processing Stripe webhook event: {event_type}")

            subscription = event["data"]["object"]
            ended = event_type in SUBSCRIPTION_ENDED_EVENTS or (
                event_type == SUBSCRIPTION_UPDATED_EVENT
                and subscription.get("status") in INACTIVE_SUBSCRIPTION_STATUSES
            )
            if not ended:
                return {"data": 0, "is_error": False}

            email = await self._customer_email(subscription.get("customer"))
            if not email:
                logger.warning(f"Webhook {event_type}: no customer email, grant left unchanged")
                return {"data": 0, "is_error": False}

            changed = await PremiumGrantRepository(self.db).deactivate_by_email(email)
            await self.db.commit()
            logger.info(f"Webhook {event_type}: deactivated {changed} premium grant(s) for {email}")
            return {"data": changed, "is_error": False}

        except Exception as e:
            logger.error(f"Error processing webhook: {e}", exc_info=True)
            return {"error": str(e), "is_error": True}

    async def _customer_email(self, customer_id: Optional[str]) -> Optional[str]:
        if not customer_id:
            return None
        customer = await asyncio.to_thread(
            stripe.Customer.retrieve, customer_id, api_key=settings.stripe_secret_key
        )
        email = customer.get("email")
        return email.lower() if email else None

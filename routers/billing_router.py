"""
Billing Router - API endpoints for Stripe billing integration
Webhook is defined FIRST to avoid middleware conflicts
"""

import logging
from typing import Optional
from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
import stripe

from auth import get_optional_session, get_current_user, get_poller_registry
from database import get_db
from models.session import SessionContext
from models.user import UserOut
from services.billing_service import BillingService
from services.payment_service import PaymentService
from services.status_poller import PollerRegistry
from backend.utils.errors import PaymentFinalizationError, UserNotFoundError, PAYMENT_SUPPORT_MESSAGE
from backend.utils.responses import success_response, error_response
from utils.shared_utils import log_endpoint_event
from config.settings import settings

logger = logging.getLogger(__name__)

# Create billing router
billing_router = APIRouter(prefix="/api/billing", tags=["billing"])


class PaymentSuccessRequest(BaseModel):
    session_id: str = Field(..., min_length=1, description="Stripe Checkout session id from the success URL")


def request_origin(request: Request) -> str:
    """
    Origin the browser is on, so return URLs work for preview and production
    deployments alike. Falls back to the URL this request was served from.
    """
    origin = request.headers.get("origin")
    if origin and origin != "null":
        return origin.rstrip("/")
    return str(request.base_url).rstrip("/")


# WEBHOOK ENDPOINT - MUST BE DEFINED FIRST TO AVOID MIDDLEWARE CONFLICTS
@billing_router.post("/webhook")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Handle Stripe webhook events with signature verification.

    Only verified events are processed to prevent spoofing attacks.
    Always returns 200 OK to Stripe to prevent retries.
    """
    try:
        webhook_secret = settings.stripe_webhook_secret
        if not webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET environment variable is not set")
            return JSONResponse(
                status_code=200,
                content={"ok": False, "received": True, "error": "Webhook secret not configured"}
            )

        # Get raw request body (required for signature verification)
        payload = await request.body()

        stripe_signature = request.headers.get("stripe-signature")
        if not stripe_signature:
            logger.error("Missing Stripe-Signature header")
            return JSONResponse(
                status_code=200,
                content={"ok": False, "received": True, "error": "Missing signature header"}
            )

        try:
            event = stripe.Webhook.construct_event(
                payload,
                stripe_signature,
                webhook_secret
            )
        except stripe.SignatureVerificationError as e:
            logger.error(f"Stripe webhook signature verification failed: {e}")
            return JSONResponse(
                status_code=200,
                content={"ok": False, "received": True, "error": "Invalid webhook signature"}
            )
        except ValueError as e:
            logger.error(f"Invalid webhook payload: {e}")
            return JSONResponse(
                status_code=200,
                content={"ok": False, "received": True, "error": "Invalid payload format"}
            )

        result = await BillingService(db).process_webhook(event)

        success = not result.get("is_error", True)
        return JSONResponse(
            status_code=200,
            content={
                "ok": success,
                "received": True,
                "event_type": event["type"]
            }
        )

    except Exception as e:
        logger.error(f"Webhook error: {e}", exc_info=True)
        return JSONResponse(
            status_code=200,
            content={"ok": False, "received": True, "error": str(e)}
        )


@billing_router.post("/create-checkout-session")
async def create_checkout_session(
    request: Request,
    session: Optional[SessionContext] = Depends(get_optional_session),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a Stripe Checkout session for the premium subscription.

    Returns:
        JSON response with the hosted checkout URL to redirect to
    """
    result = await BillingService(db).create_checkout_session(session, request_origin(request))
    if result.get("is_error"):
        status = 401 if session is None else 400
        log_endpoint_event("/api/billing/create-checkout-session", None, "error", {"error": result.get("error")})
        return error_response("checkout_failed", status=status, message=result.get("error", "Unknown error"))
    log_endpoint_event("/api/billing/create-checkout-session", str(session.user_id), "success")
    return success_response({"url": result["data"]})


@billing_router.post("/success")
async def payment_success(
    body: PaymentSuccessRequest,
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: PollerRegistry = Depends(get_poller_registry),
):
    """
    Finalize a completed checkout: confirm it with Stripe, mark premium, upsert
    the grant, verify, refresh. Partial state is not rolled back; the error
    names the failed step. An unconfirmed checkout writes nothing and gets 402.
    """
    try:
        outcome = await PaymentService(db).handle_successful_payment(session, body.session_id)
    except PaymentFinalizationError as e:
        log_endpoint_event("/api/billing/success", str(session.user_id), "error", {"step": e.step, "error": str(e)})
        unconfirmed = e.step == "confirm_checkout"
        return error_response(
            "payment_not_confirmed" if unconfirmed else "payment_finalization_failed",
            status=402 if unconfirmed else 500,
            message=PAYMENT_SUPPORT_MESSAGE,
            data={"failed_step": e.step, "journal": e.journal},
        )
    except UserNotFoundError as e:
        return error_response("user_not_found", status=404, message=str(e))

    # Restart polling from the verification the finalizer just ran
    registry.stop(session.user_id)
    await registry.ensure_started(session.user_id, initial=outcome["verification"])

    log_endpoint_event("/api/billing/success", str(session.user_id), "success", {"session_id": body.session_id})
    return success_response(
        {
            "user": UserOut.model_validate(outcome["user"]).model_dump(),
            "premium_status": outcome["snapshot"].model_dump(by_alias=True),
        },
        message="Premium activated",
    )

from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse

from icongen.core.config import get_settings
from icongen.core.exceptions import ProviderTerminalError
from icongen.deps import get_checkout_initiator, get_current_user
from icongen.models.user import User
from icongen.services.checkout import CheckoutSession, StripeCheckout, buy_credits

router = APIRouter()


async def _client_redirect(session: CheckoutSession) -> dict:
    return {"session_id": session.id, "publishable_key": get_settings().stripe_publishable_key}


async def _server_redirect(session: CheckoutSession) -> RedirectResponse:
    if not session.url:
        raise ProviderTerminalError("Payment provider returned no checkout URL", "stripe")
    return RedirectResponse(session.url, status_code=status.HTTP_303_SEE_OTHER)


@router.post("/sessions")
async def create_checkout_session(
    user: User = Depends(get_current_user),
    initiator: StripeCheckout | None = Depends(get_checkout_initiator),
):
    """Create a Stripe Checkout session; the browser redirects with stripe.js using session_id."""
    # stripe.js cannot load without a publishable key
    redirect = _client_redirect if get_settings().stripe_publishable_key else None
    return await buy_credits(initiator, user.id, redirect)


@router.get("")
async def checkout_redirect(
    user: User = Depends(get_current_user),
    initiator: StripeCheckout | None = Depends(get_checkout_initiator),
):
    """Create a Stripe Checkout session and 303 to its hosted payment page."""
    return await buy_credits(initiator, user.id, _server_redirect)

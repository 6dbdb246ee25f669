"""Stripe Checkout sessions for credit purchases."""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

import stripe

from icongen.core.config import Settings
from icongen.core.exceptions import PaymentsUnavailableError, ProviderTerminalError, ProviderTransientError
from icongen.core.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str | None = None


class StripeCheckout:
    """Creates hosted checkout sessions for the fixed credit pack price."""

    provider = "stripe"

    def __init__(
        self,
        api_key: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        create_session: Callable[..., Any] | None = None,
    ) -> None:
        self.api_key = api_key
        self.price_id = price_id
        self.success_url = success_url
        self.cancel_url = cancel_url
        self._create_session = create_session or stripe.checkout.Session.create

    @classmethod
    def from_settings(cls, settings: Settings) -> "StripeCheckout | None":
        if not settings.payments_configured:
            return None
        return cls(
            api_key=settings.stripe_secret_key,
            price_id=settings.stripe_price_id,
            success_url=settings.checkout_success_url,
            cancel_url=settings.checkout_cancel_url,
        )

    async def create_session(self, user_id: Any) -> CheckoutSession:
        try:
            session = await asyncio.to_thread(
                self._create_session,
                api_key=self.api_key,
                mode="payment",
                line_items=[{"price": self.price_id, "quantity": 1}],
                success_url=self.success_url,
                cancel_url=self.cancel_url,
                client_reference_id=str(user_id),
                metadata={"user_id": str(user_id)},
            )
        except (stripe.APIConnectionError, stripe.RateLimitError) as e:
            raise ProviderTransientError("Payment provider unavailable", self.provider) from e
        except stripe.StripeError as e:
            status = getattr(e, "http_status", None) or 0
            if status >= 500:
                raise ProviderTransientError("Payment provider unavailable", self.provider) from e
            raise ProviderTerminalError(
                "Payment provider rejected checkout",
                self.provider,
                details={"status_code": status},
            ) from e

        session_id = getattr(session, "id", None)
        if not session_id:
            raise ProviderTerminalError("Payment provider returned no session id", self.provider)
        log.info("checkout_session_created", user_id=str(user_id), session_id=session_id)
        return CheckoutSession(id=session_id, url=getattr(session, "url", None))


async def buy_credits(
    initiator: StripeCheckout | None,
    user_id: Any,
    redirect: Callable[[CheckoutSession], Awaitable[T]] | None,
) -> T:
    """
    Create a checkout session and hand it to the redirect primitive.

    A missing initiator or redirect is reported instead of skipped. If session creation fails
    the error propagates and redirect is never called.
    """
    if initiator is None:
        raise PaymentsUnavailableError("Payments not configured")
    if redirect is None:
        raise PaymentsUnavailableError("Payment client not initialized")
    session = await initiator.create_session(user_id)
    return await redirect(session)

"""
Backoff for blocking Stripe SDK calls.

Stripe calls run in a worker thread (``asyncio.to_thread``), so the wait
between attempts is a plain ``time.sleep``. Only transient failures are
retried: rate limiting, network trouble and 5xx answers from Stripe.
Card errors, bad requests and auth problems surface immediately.
"""

import functools
import time

import stripe

from src.config.logging_config import setup_logger

logger = setup_logger(__name__)

STRIPE_ATTEMPTS = 3
FIRST_WAIT_SECONDS = 0.5
WAIT_CEILING_SECONDS = 8.0
WAIT_MULTIPLIER = 2.0

TRANSIENT_MARKERS = ("429", "503", "timed out", "timeout", "connection reset")


def is_transient_stripe_error(exc: BaseException) -> bool:
    if isinstance(exc, (stripe.RateLimitError, stripe.APIConnectionError)):
        return True
    if isinstance(exc, stripe.StripeError):
        status = getattr(exc, "http_status", None)
        if status is not None:
            return status >= 500
    text = str(exc).lower()
    return any(marker in text for marker in TRANSIENT_MARKERS)


def backoff_schedule(attempts: int, first: float, ceiling: float, multiplier: float) -> list[float]:
    """Waits between attempts; one fewer than ``attempts``."""
    waits = []
    wait = first
    for _ in range(max(attempts - 1, 0)):
        waits.append(wait)
        wait = min(wait * multiplier, ceiling)
    return waits


def with_retry(
    retries: int = STRIPE_ATTEMPTS - 1,
    first_wait: float = FIRST_WAIT_SECONDS,
    ceiling: float = WAIT_CEILING_SECONDS,
    multiplier: float = WAIT_MULTIPLIER,
    sleep=time.sleep,
):
    """Decorator: call again after a growing pause while the Stripe error is transient."""
    waits = backoff_schedule(retries + 1, first_wait, ceiling, multiplier)

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            for attempt, wait in enumerate(waits, start=1):
                try:
                    return fn(*args, **kwargs)
                except Exception as e:
                    if not is_transient_stripe_error(e):
                        raise
                    logger.warning(
                        "%s failed (attempt %s/%s, %s): retrying in %.1fs",
                        fn.__name__,
                        attempt,
                        len(waits) + 1,
                        type(e).__name__,
                        wait,
                    )
                    sleep(wait)
            return fn(*args, **kwargs)

        return wrapper

    return decorator

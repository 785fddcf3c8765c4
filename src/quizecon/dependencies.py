"""Shared FastAPI dependencies for state constructed in the app lifespan."""

from fastapi import Request

from quizecon.cache import ResponseCache
from quizecon.database import get_session
from quizecon.payments.processor import PaymentProcessor

get_db = get_session


def get_cache(request: Request) -> ResponseCache:
    """The response cache built on startup."""
    return request.app.state.cache


def get_payment_processor(request: Request) -> PaymentProcessor:
    """The payment processor client built on startup."""
    return request.app.state.payment_processor

"""API package exports."""

from user_auth.api.auth import router
from user_auth.api.middleware import CorrelationIdMiddleware

__all__ = ["router", "CorrelationIdMiddleware"]

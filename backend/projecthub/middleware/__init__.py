"""Middleware package."""

from projecthub.middleware.logging import LoggingMiddleware
from projecthub.middleware.request_id import RequestIDMiddleware

__all__ = ["LoggingMiddleware", "RequestIDMiddleware"]

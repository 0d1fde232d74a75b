"""Middleware exports."""

from .logging import RequestLogMiddleware

__all__ = ["RequestLogMiddleware"]

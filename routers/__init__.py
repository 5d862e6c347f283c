"""HTTP routers for agy-top."""

from .auth_callback import create_callback_app, router as auth_callback_router

__all__ = ["auth_callback_router", "create_callback_app"]

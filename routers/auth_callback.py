"""Browser login callback router for agy-top."""

from html import escape
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import HTMLResponse

from models import StoredAuth
from utils import get_logger, to_int

router = APIRouter(tags=["auth"])
logger = get_logger(__name__)

_PAGE = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>{title}</title>
    <style>
      body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
             text-align: center; padding: 50px; background: #0a0a0a; color: #fff; }}
      h1 {{ color: {color}; }}
      p {{ color: #a3a3a3; }}
    </style>
  </head>
  <body>
    <h1>{title}</h1>
    <p>{message}</p>
    <p>agy-top</p>
  </body>
</html>
"""


def render_page(title: str, message: str, success: bool) -> str:
    return _PAGE.format(
        title=escape(title),
        message=escape(message),
        color="#22c55e" if success else "#ef4444",
    )


def get_login_session(request: Request) -> Any:
    """Dependency to get the pending login session from application state."""
    return request.app.state.login_session


@router.get("/callback", response_class=HTMLResponse)
async def login_callback(
    token: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    user_id: Optional[str] = Query(default=None, alias="userId"),
    email: Optional[str] = Query(default=None),
    session: Any = Depends(get_login_session),
) -> HTMLResponse:
    """Receive the token issued by the web app and hand it to the waiting CLI."""
    if token:
        parsed_user_id = to_int(user_id) or None
        session.complete(StoredAuth(token=token, user_id=parsed_user_id, email=email or None))
        logger.info("Login callback received", user_id=parsed_user_id)
        return HTMLResponse(
            render_page(
                "Login Successful!",
                "You can close this window and return to the terminal.",
                success=True,
            )
        )

    reason = error or "An error occurred during login."
    session.fail(reason)
    logger.warning("Login callback reported failure", error=reason)
    return HTMLResponse(
        render_page("Login Failed", f"{reason} Please return to the terminal and try again.", success=False)
    )


def create_callback_app(session: Any) -> FastAPI:
    """Create the single-route app served during a browser login."""
    app = FastAPI(title="agy-top login callback", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.login_session = session
    app.include_router(router)
    return app

"""Auth API endpoints: password sign-in, Google sign-in and channel connect."""
import logging
from datetime import datetime, timezone

import httpx
from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from channel_dashboard.config import settings
from channel_dashboard.dependencies import get_db, get_optional_user
from channel_dashboard.integrations.google.oauth import GoogleOAuthClient
from channel_dashboard.integrations.youtube.client import YouTubeClient
from channel_dashboard.models.user import User
from channel_dashboard.schemas.auth import SignInRequest, UserInfo
from channel_dashboard.schemas.common import APIResponse
from channel_dashboard.services import auth_service, channel_service
from channel_dashboard.utils.encryption import get_token_encryptor

logger = logging.getLogger(__name__)

router = APIRouter()

LOGIN_STATE = "login"
ADD_CHANNEL_STATE = "add_channel"


def _set_session_cookie(response: Response, user: User) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        auth_service.create_session_token(str(user.id)),
        max_age=settings.SESSION_MAX_AGE_DAYS * 86400,
        httponly=True,
        secure=settings.APP_ENV == "production",
        samesite="lax",
        path="/",
    )


def _frontend_redirect(path: str) -> RedirectResponse:
    return RedirectResponse(f"{settings.FRONTEND_URL.rstrip('/')}{path}", status_code=302)


@router.post("/signin", response_model=APIResponse)
async def signin(body: SignInRequest, response: Response, db: AsyncSession = Depends(get_db)):
    user = await auth_service.authenticate_user(db, body.username, body.password)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")

    user.last_login_at = datetime.now(timezone.utc)
    _set_session_cookie(response, user)
    return APIResponse(status="success", data=UserInfo.model_validate(user).model_dump(mode="json"))


# GET /auth/google: sign in with a Google account
@router.get("/google")
async def google_login():
    async with GoogleOAuthClient.from_settings() as oauth:
        return RedirectResponse(oauth.build_auth_url(LOGIN_STATE), status_code=302)


# GET /auth/connect: add another channel to the signed-in account
@router.get("/connect")
async def connect_channel(user: User | None = Depends(get_optional_user)):
    if user is None:
        return _frontend_redirect("/?error=not_logged_in")
    async with GoogleOAuthClient.from_settings() as oauth:
        return RedirectResponse(oauth.build_auth_url(ADD_CHANNEL_STATE), status_code=302)


@router.get("/callback")
async def oauth_callback(
    code: str | None = None,
    state: str = "",
    error: str | None = None,
    session_user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if error:
        return _frontend_redirect("/?error=auth_denied")
    if not code:
        return _frontend_redirect("/?error=no_code")

    adding_channel = state == ADD_CHANNEL_STATE and session_user is not None
    try:
        async with GoogleOAuthClient.from_settings() as oauth:
            tokens = await oauth.exchange_code(code)
            if adding_channel:
                user = session_user
            else:
                user = await auth_service.upsert_google_user(
                    db, await oauth.get_user_info(tokens.access_token)
                )

        async with YouTubeClient(tokens.access_token, timeout=settings.UPSTREAM_TIMEOUT_SECONDS) as youtube:
            channel_data = await youtube.get_my_channel()

        if channel_data:
            await channel_service.upsert_from_oauth(
                db, user.id, channel_data, tokens, get_token_encryptor()
            )
        else:
            logger.warning("Google account for user %s has no YouTube channel", user.id)
    except (httpx.HTTPError, ValueError, KeyError):
        logger.exception("OAuth callback failed")
        return _frontend_redirect("/?error=auth_failed")

    if adding_channel:
        return _frontend_redirect("/dashboard?channel_added=true")

    response = _frontend_redirect("/dashboard")
    _set_session_cookie(response, user)
    return response


@router.get("/me", response_model=APIResponse)
async def me(user: User | None = Depends(get_optional_user)):
    data = UserInfo.model_validate(user).model_dump(mode="json") if user else None
    return APIResponse(status="success", data=data)


@router.post("/logout", response_model=APIResponse)
async def logout(response: Response):
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return APIResponse(status="success", message="Logged out successfully")

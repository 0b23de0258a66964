"""HTTP routes for the activity ledger.

Login sets an `auth` cookie holding a session token; every other ledger
route validates that cookie and opens the caller's own ledger for the
duration of the request. The cookie value is itself signed, so a token
cannot be forged on the wire even when tokens are unsigned.
"""

from __future__ import annotations

import logging
import secrets
from typing import Iterator

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from itsdangerous import BadSignature, Signer

from .auth import SessionAuth
from .config import Settings, configure_logging, load_settings
from .constants import AUTH_COOKIE, COOKIE_SALT
from .errors import (
    DuplicateKey,
    DuplicateUser,
    Expired,
    InvalidCredentials,
    InvalidUsername,
    Malformed,
    NotFound,
    OkraError,
    StorageUnavailable,
    UnknownUser,
)
from .ledger import ActivityLedger
from .models import Action, Activity, LoginInfo, Note
from .registry import LedgerRegistry

logger = logging.getLogger(__name__)

# Most specific first: InvalidSignature is matched through Malformed.
ERROR_STATUS: list[tuple[type[OkraError], int]] = [
    (NotFound, 404),
    (DuplicateUser, 409),
    (DuplicateKey, 409),
    (UnknownUser, 401),
    (InvalidCredentials, 401),
    (Expired, 401),
    (Malformed, 400),
    (InvalidUsername, 400),
    (StorageUnavailable, 503),
]


def status_for(error: OkraError) -> int:
    for kind, status in ERROR_STATUS:
        if isinstance(error, kind):
            return status
    return 500


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth(settings: Settings = Depends(get_settings)) -> Iterator[SessionAuth]:
    auth = SessionAuth(
        settings.users_db,
        session_lifetime_seconds=settings.session_lifetime_seconds,
        secret_key=settings.secret_key,
    )
    try:
        yield auth
    finally:
        auth.close()


def cookie_signer(secret_key: str | None) -> Signer:
    """Signer for the `auth` cookie.

    Without a configured key a random one is drawn, so cookies stop
    verifying when the process restarts.
    """
    if secret_key is None:
        logger.warning("OKRA_SECRET_KEY is not set; using a per-process cookie key")
        secret_key = secrets.token_urlsafe(32)
    return Signer(secret_key, salt=COOKIE_SALT)


def current_user(request: Request, auth: SessionAuth = Depends(get_auth)) -> str:
    cookie = request.cookies.get(AUTH_COOKIE)
    if cookie is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    signer: Signer = request.app.state.cookie_signer
    try:
        token = signer.unsign(cookie).decode("utf-8")
    except BadSignature:
        logger.info(f"Rejected forged {AUTH_COOKIE} cookie")
        raise HTTPException(status_code=401, detail="Unauthorized") from None
    return auth.validate(token)


def get_ledger(
    request: Request,
    username: str = Depends(current_user),
) -> Iterator[ActivityLedger]:
    registry: LedgerRegistry = request.app.state.registry
    ledger = registry.open(username)
    try:
        yield ledger
    finally:
        ledger.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the HTTP application.

    Args:
        settings: Explicit settings (tests); defaults to the environment.
    """
    settings = settings or load_settings()

    app = FastAPI(title="okra", redirect_slashes=False)
    app.state.settings = settings
    app.state.registry = LedgerRegistry(settings.ledger_dir)
    app.state.cookie_signer = cookie_signer(settings.secret_key)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Accept", "Content-Type"],
        allow_credentials=True,
    )

    @app.exception_handler(OkraError)
    async def okra_error_handler(request: Request, exc: OkraError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected ({status}): {exc}")
        return JSONResponse({"error": type(exc).__name__, "detail": str(exc)}, status_code=status)

    # --- Sessions ---

    @app.post("/users/login", response_class=PlainTextResponse)
    def login(
        login_info: LoginInfo,
        response: Response,
        auth: SessionAuth = Depends(get_auth),
    ) -> str:
        token = auth.login_info(login_info)
        response.set_cookie(
            AUTH_COOKIE,
            app.state.cookie_signer.sign(token).decode("utf-8"),
            max_age=settings.session_lifetime_seconds,
            httponly=True,
            samesite="lax",
        )
        return f"hello {login_info.username}"

    @app.get("/users/logout", response_class=PlainTextResponse)
    def logout(response: Response) -> str:
        response.delete_cookie(AUTH_COOKIE)
        return "OK"

    # --- Actions ---

    @app.get("/action/get/{max_results}/{last_id}")
    def get_actions(
        max_results: int,
        last_id: int,
        substring: str = "",
        ledger: ActivityLedger = Depends(get_ledger),
    ) -> list[Action]:
        return ledger.search_action_names(substring, last_id, settings.clamp_page(max_results))

    @app.get("/action/get_name/{action_id}", response_class=PlainTextResponse)
    def get_action_name(action_id: int, ledger: ActivityLedger = Depends(get_ledger)) -> str:
        return ledger.get_action_name(action_id)

    # --- Activities ---

    @app.get("/activity/log/{action_id}", response_class=PlainTextResponse)
    def log_activity(action_id: int, ledger: ActivityLedger = Depends(get_ledger)) -> str:
        return str(ledger.log_activity(action_id))

    @app.get("/activity/notate/{activity_id}/{notes}", response_class=PlainTextResponse)
    def notate_activity(
        activity_id: int,
        notes: str,
        ledger: ActivityLedger = Depends(get_ledger),
    ) -> str:
        return str(ledger.annotate_activity(activity_id, notes))

    @app.get("/activity/search/{from_ms}/{to_ms}")
    def search_activities(
        from_ms: int,
        to_ms: int,
        limit: int | None = None,
        ledger: ActivityLedger = Depends(get_ledger),
    ) -> list[Activity]:
        return ledger.search_activity_by_time(from_ms, to_ms, settings.clamp_page(limit))

    @app.get("/activity/notations/{activity_id}/{last_id}")
    def get_notations(
        activity_id: int,
        last_id: int,
        limit: int | None = None,
        ledger: ActivityLedger = Depends(get_ledger),
    ) -> list[Note]:
        ledger.get_activity(activity_id)
        note_ids = ledger.get_notations(activity_id, last_id, settings.clamp_page(limit))
        return ledger.get_note_bulk(note_ids)

    return app


def main() -> None:
    """Entry point for `okra serve` and `python -m okra.server`."""
    import uvicorn

    settings = load_settings()
    configure_logging(settings)
    logger.info(f"okra starting (data_dir={settings.data_dir}, users_db={settings.users_db})")
    if settings.secret_key is None:
        logger.warning("OKRA_SECRET_KEY is not set; session tokens are unsigned")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()

"""TripGate FastAPI application."""
import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tripgate.api import guest, health, invite, participants, plans, profile
from tripgate.auth.codes import CodeIssuer
from tripgate.auth.credentials import get_credential_verifier
from tripgate.auth.guest_session import GuestSessionStore
from tripgate.auth.rate_limit import get_code_request_limiter, get_verify_limiter
from tripgate.config import (
    SESSION_CLEANUP_INTERVAL,
    validate_identity_provider_config,
)
from tripgate.exceptions import TooManyRequests, TripGateError, Unauthorized
from tripgate.logging_config import configure_logging

configure_logging()
log = logging.getLogger("tripgate")


def run_cleanup() -> tuple[int, int]:
    """Remove expired guest sessions and dead verification codes.

    Returns:
        (sessions removed, codes removed)
    """
    from tripgate.db.session import get_db_session

    with get_db_session() as db:
        sessions = GuestSessionStore(db).revoke_expired()
        codes = CodeIssuer(db).purge_expired()
    return sessions, codes


async def _cleanup_task():
    """Periodically purge expired sessions, codes and rate-limit keys."""
    while True:
        await asyncio.sleep(SESSION_CLEANUP_INTERVAL)
        try:
            sessions, codes = run_cleanup()
            keys = await get_code_request_limiter().cleanup()
            keys += await get_verify_limiter().cleanup()
            if sessions or codes or keys:
                log.debug(
                    f"Cleanup: removed {sessions} sessions, {codes} codes, "
                    f"{keys} rate-limit keys"
                )
        except Exception as e:
            log.error(f"Cleanup error: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    log.info("Starting TripGate service...")

    from tripgate.db.session import init_database
    init_database()

    valid, error = validate_identity_provider_config()
    if not valid:
        log.warning(f"Identity provider misconfigured: {error}")
    elif get_credential_verifier() is None:
        log.warning("TRIPGATE_JWKS_URL not set: bearer credentials will be ignored")

    cleanup_task = asyncio.create_task(_cleanup_task())
    log.info(f"Cleanup task started (interval: {SESSION_CLEANUP_INTERVAL}s)")

    yield

    log.info("Shutting down TripGate service...")
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    log.info("TripGate service stopped")


app = FastAPI(
    title="TripGate",
    version="0.1.0",
    description="Guest verification and authorization for shared trip plans",
    lifespan=lifespan,
)


@app.exception_handler(TripGateError)
async def tripgate_error_handler(request: Request, exc: TripGateError) -> JSONResponse:
    """Render domain errors as {"detail", "code", ...} with their status."""
    headers = {}
    if isinstance(exc, TooManyRequests):
        headers["Retry-After"] = str(exc.retry_after)
    elif isinstance(exc, Unauthorized):
        headers["WWW-Authenticate"] = "Bearer"

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers,
    )


@app.get("/version")
def version():
    """Return service version and build commit."""
    git_sha = os.getenv("GIT_SHA", "unknown")

    result = {"version": app.version, "git_sha": git_sha}
    if git_sha != "unknown":
        result["short_sha"] = git_sha[:7]

    return result


app.include_router(health.router)
app.include_router(invite.router)
app.include_router(guest.router)
app.include_router(participants.router)
app.include_router(plans.router)
app.include_router(profile.router)

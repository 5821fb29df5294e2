import logging
import secrets
from typing import Annotated

from fastapi import Depends, Header, Request

from playscanner.errors import UnauthorizedError
from playscanner.services.container import Services

logger = logging.getLogger(__name__)


# ── Services ───────────────────────────────────────────────────────────────


def get_services(request: Request) -> Services:
    return request.app.state.services


ServicesDep = Annotated[Services, Depends(get_services)]


# ── Bearer secret ──────────────────────────────────────────────────────────


async def require_bearer(
    services: ServicesDep,
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """
    FastAPI dependency guarding privileged endpoints.

    Compares the Authorization header against ``Bearer <collect_secret>``
    in constant time.  An unset secret rejects everything.
    """
    secret = services.settings.collect_secret
    if not secret or not authorization:
        raise UnauthorizedError("Unauthorized")
    if not secrets.compare_digest(authorization.encode(), f"Bearer {secret}".encode()):
        logger.warning("Rejected request with invalid bearer token")
        raise UnauthorizedError("Unauthorized")


Authorized = Depends(require_bearer)

import logging
import os

from fastapi import Request, status
from fastapi.responses import JSONResponse
from firebase_admin import _apps, auth, credentials, initialize_app

from nftrent.core.config import config
from nftrent.security.monitor import current_user_id

logger = logging.getLogger(__name__)

firebase_app = None


def init_firebase():
    global firebase_app
    if not _apps and os.getenv("TESTING") != "1":
        cred = credentials.Certificate(config.firebase_credentials_path)
        firebase_app = initialize_app(cred)


def _auth_failure(request: Request, reason: str, status_code: int, content):
    security = getattr(request.app.state, "security", None)
    if security is not None:
        security.event_log.log_auth_failure(reason, {"path": request.url.path})
    return JSONResponse(status_code=status_code, content=content)


async def authenticate_request(request: Request, call_next):
    if request.url.path.startswith(("/docs", "/openapi.json", "/redoc")):
        return await call_next(request)

    auth_header = request.headers.get("Authorization")

    if not auth_header:
        return _auth_failure(
            request,
            "Authorization header is missing",
            status.HTTP_401_UNAUTHORIZED,
            {"detail": "Authorization header is missing"},
        )

    token = auth_header.split(" ")[1] if " " in auth_header else None
    if not token:
        return _auth_failure(
            request,
            "Malformed bearer token",
            status.HTTP_403_FORBIDDEN,
            {"detail": "Invalid or missing authentication token"},
        )

    if os.getenv("TESTING") == "1":
        return await call_next(request)

    try:
        user = auth.verify_id_token(token, firebase_app)
    except (ValueError, auth.InvalidIdTokenError, auth.CertificateFetchError) as e:
        logger.info("token verification failed: %s", e)
        return _auth_failure(
            request,
            f"Token verification failed: {type(e).__name__}",
            status.HTTP_401_UNAUTHORIZED,
            {"detail": f"{e}"},
        )

    request.state.user = user
    current_user_id.set(user.get("uid"))
    return await call_next(request)

"""
Supabase JWT Authentication

Validates the HS256 access tokens Supabase issues to signed-in users and
stores the user ID on the request for downstream handlers.
"""

import logging

import jwt
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from lois.settings import AuthSettings

logger = logging.getLogger(__name__)


# Paths that don't require authentication
PUBLIC_PATHS = {
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}


def _unauthorized(detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": detail},
        headers={"WWW-Authenticate": "Bearer"},
    )


class SupabaseAuthMiddleware(BaseHTTPMiddleware):
    """
    Middleware that validates Supabase JWTs on all non-public requests.
    """

    def __init__(self, app, settings: AuthSettings):
        super().__init__(app)
        self.settings = settings
        logger.info("Supabase auth configured with audience: %s", settings.SUPABASE_JWT_AUDIENCE)

    async def dispatch(self, request: Request, call_next):
        # Skip auth for public paths
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        # Skip auth for OPTIONS requests (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header:
            return _unauthorized("Missing Authorization header")

        try:
            scheme, token = auth_header.split(" ", 1)
            if scheme.lower() != "bearer":
                raise ValueError("Invalid auth scheme")
        except ValueError:
            return _unauthorized("Invalid Authorization header format")

        try:
            payload = jwt.decode(
                token,
                self.settings.SUPABASE_JWT_SECRET,
                algorithms=["HS256"],
                audience=self.settings.SUPABASE_JWT_AUDIENCE,
            )
        except jwt.ExpiredSignatureError:
            return _unauthorized("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.error("Token validation failed: %s", e)
            return _unauthorized(f"Invalid token: {str(e)}")

        # Store user info in request state for downstream use
        request.state.user = payload
        request.state.user_id = payload.get("sub")
        logger.debug("Auth middleware: extracted user_id = %s", request.state.user_id)

        return await call_next(request)

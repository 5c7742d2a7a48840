from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from futuretek.routes.envelope import error_response

# Everything outside /api/ (health, docs) is public; these are the exceptions inside it
PUBLIC_API_PATHS: frozenset[str] = frozenset()

DOCS_PREFIXES = ("/docs", "/openapi", "/redoc")


def _needs_token(request: Request) -> bool:
    path = request.url.path
    if path.startswith(DOCS_PREFIXES) or not path.startswith("/api/"):
        return False
    # CORS preflight carries no credentials
    return request.method != "OPTIONS" and path not in PUBLIC_API_PATHS


class AuthMiddleware(BaseHTTPMiddleware):
    """Turn away /api/ requests that carry no bearer token.

    Only presence is checked here; get_current_user() verifies the token and
    its claims inside each route.
    """

    async def dispatch(self, request: Request, call_next):
        if not _needs_token(request):
            return await call_next(request)

        if not request.headers.get("Authorization", "").startswith("Bearer "):
            return error_response("Not authenticated", "UNAUTHORIZED", 401)

        return await call_next(request)

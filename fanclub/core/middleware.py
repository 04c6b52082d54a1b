from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from fanclub.core.config import get_settings

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        cfg = get_settings()
        # Cross-origin API calls are refused in production when an allow-list is set
        if cfg.is_production and cfg.ALLOWED_ORIGINS and request.url.path.startswith("/api/"):
            origin = request.headers.get("origin")
            if origin and origin not in cfg.ALLOWED_ORIGINS:
                response = JSONResponse({"error": "Forbidden"}, status_code=403)
                for k, v in SECURITY_HEADERS.items():
                    response.headers.setdefault(k, v)
                return response

        response = await call_next(request)
        for k, v in SECURITY_HEADERS.items():
            response.headers.setdefault(k, v)
        return response

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.core.settings import settings

# JSON-only API: nothing it returns should load resources or be framed.
API_CSP = "default-src 'none'; frame-ancestors 'none'"
# Swagger UI pulls its assets from a CDN and is left to the browser defaults.
_DOCS_PATHS = ("/api/docs", "/api/openapi.json")

_ALWAYS: tuple[tuple[bytes, bytes], ...] = (
    (b"x-content-type-options", b"nosniff"),
    (b"x-frame-options", b"DENY"),
    (b"referrer-policy", b"no-referrer"),
    (b"cross-origin-resource-policy", b"same-origin"),
    # borrower PAN, Aadhaar and bank data must not land in shared caches
    (b"cache-control", b"no-store"),
)
_HSTS = (b"strict-transport-security", b"max-age=63072000; includeSubDomains")


def _csp_header() -> tuple[bytes, bytes]:
    name = (
        b"content-security-policy-report-only"
        if settings.content_security_policy_report_only
        else b"content-security-policy"
    )
    return name, (settings.content_security_policy or API_CSP).encode()


class SecurityHeadersMiddleware:
    """Add security headers the route has not set itself."""

    def __init__(self, app: ASGIApp, enable_hsts: bool = True) -> None:
        self.app = app
        self.enable_hsts = enable_hsts

    def _headers_for(self, path: str) -> list[tuple[bytes, bytes]]:
        headers = list(_ALWAYS)
        if self.enable_hsts:
            headers.append(_HSTS)
        if not path.startswith(_DOCS_PATHS):
            headers.append(_csp_header())
        return headers

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        defaults = self._headers_for(scope.get("path", ""))

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                present = {key.lower() for key, _ in headers}
                headers.extend((key, value) for key, value in defaults if key not in present)
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_with_headers)

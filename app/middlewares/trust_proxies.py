from starlette.types import ASGIApp, Receive, Scope, Send


class TrustedProxiesMiddleware:
    """Resolve the client address from X-Forwarded-For behind a fixed number of proxies.

    slowapi keys public endpoints (lead capture, mobile OTP, e-sign callback)
    on the client address, so it has to be the borrower's, not the load balancer's.
    """

    def __init__(self, app: ASGIApp, proxies_count: int = 0) -> None:
        self.app = app
        self.proxies_count = proxies_count

    def _client_ip(self, forwarded_for: str) -> str | None:
        hops = [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]
        # the last N hops are our own proxies
        if len(hops) <= self.proxies_count:
            return None
        return hops[-(self.proxies_count + 1)]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.proxies_count > 0:
            headers = dict(scope.get("headers", []))
            client_ip = self._client_ip(headers.get(b"x-forwarded-for", b"").decode())
            if client_ip:
                port = scope["client"][1] if scope.get("client") else 0
                scope["client"] = (client_ip, port)
        await self.app(scope, receive, send)

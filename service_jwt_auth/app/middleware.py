"""
ASGI middleware applying the JWT filter to requests under a path prefix.
"""

from typing import List, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from shared.logging import get_logger
from .auth.authenticator import RequestFilter
from .auth.models import GatewayRequest, Rejected
from .config import RouteTable


def rejection_response(outcome: Rejected) -> JSONResponse:
    return JSONResponse(status_code=outcome.status_code, content={"message": outcome.message})


def apply_upstream_headers(request: Request, gateway_request: GatewayRequest) -> None:
    """Rewrite the ASGI scope headers with the filter's header mutations."""
    mutations = gateway_request.header_mutations()
    if not mutations:
        return
    names = {name.lower().encode("latin-1") for name, _ in mutations}
    headers: List[Tuple[bytes, bytes]] = [
        (name, value) for name, value in request.scope["headers"] if name not in names
    ]
    for name, value in mutations:
        if value is not None:
            headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))
    request.scope["headers"] = headers
    # Starlette caches parsed headers on the request object.
    request.__dict__.pop("_headers", None)


class JwtAuthMiddleware(BaseHTTPMiddleware):
    """
    Authenticates every request under ``protected_prefix``.

    Rejected requests are answered here; accepted ones continue with the
    consumer and claim headers set, and with ``request.state.auth_outcome``
    and ``request.state.auth_context`` available to handlers.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        auth_filter: RequestFilter,
        routes: RouteTable,
        protected_prefix: str = "/",
        exempt_paths: Tuple[str, ...] = ("/health", "/metrics"),
    ):
        super().__init__(app)
        self.auth_filter = auth_filter
        self.routes = routes
        self.protected_prefix = protected_prefix
        self.exempt_paths = exempt_paths
        self.logger = get_logger("jwt_auth.middleware")

    def _is_protected(self, path: str) -> bool:
        for exempt in self.exempt_paths:
            if path == exempt or path.startswith(exempt.rstrip("/") + "/"):
                return False
        return path.startswith(self.protected_prefix)

    async def dispatch(self, request: Request, call_next):
        if not self._is_protected(request.url.path):
            return await call_next(request)

        context = getattr(request.state, "auth_context", None)
        gateway_request = GatewayRequest.from_starlette(request, context=context)
        outcome = await self.auth_filter.decide(gateway_request, self.routes.config_for(request.url.path))

        if isinstance(outcome, Rejected):
            return rejection_response(outcome)

        apply_upstream_headers(request, gateway_request)
        request.state.auth_outcome = outcome
        request.state.auth_context = gateway_request.context
        return await call_next(request)

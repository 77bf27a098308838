"""
JWT auth service: the gateway's JWT filter exposed as middleware, a
forward-auth endpoint and cache management routes.
"""

import os
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlsplit

from fastapi import Request, Response
from prometheus_client import CollectorRegistry

from shared.base_service import BaseService
from shared.config import get_config
from .adapters import CredentialStore, InMemoryCredentialStore, PostgresCredentialStore
from .auth import ConsumerResolver, CredentialResolver, JwtAuthenticator, Rejected
from .auth.models import GatewayRequest
from .caching import SingleFlightCache
from .config import JwtAuthSettings, RouteTable
from .middleware import JwtAuthMiddleware, rejection_response

SERVICE_NAME = "jwt_auth"
DEFAULT_PORT = 8000


class JwtAuthService(BaseService):
    """JWT auth service implementation."""

    def __init__(
        self,
        *,
        config: Optional[JwtAuthSettings] = None,
        store: Optional[Union[CredentialStore, PostgresCredentialStore]] = None,
        routes: Optional[RouteTable] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        config = config or get_config(SERVICE_NAME, DEFAULT_PORT, JwtAuthSettings)
        super().__init__(SERVICE_NAME, config.port, config=config, registry=registry)

        if routes is None:
            routes = RouteTable.from_file(config.routes_file) if config.routes_file else RouteTable()
        self.routes = routes
        self.store = store if store is not None else self._create_store()

        self.cache = SingleFlightCache(
            ttl=config.cache_ttl_seconds,
            negative_ttl=config.cache_negative_ttl_seconds,
            maxsize=config.cache_max_entries,
            negative_maxsize=config.cache_negative_max_entries,
            metrics=self.metrics,
        )
        self.credentials = CredentialResolver(self.store, self.cache)
        self.consumers = ConsumerResolver(self.store, self.cache)
        self.authenticator = JwtAuthenticator(
            self.credentials,
            self.consumers,
            metrics=self.metrics,
        )

        self.app.add_middleware(
            JwtAuthMiddleware,
            auth_filter=self.authenticator,
            routes=self.routes,
            protected_prefix=config.protected_prefix,
            exempt_paths=self._exempt_paths(config),
        )

        @self.app.on_event("startup")
        async def _startup():
            if isinstance(self.store, PostgresCredentialStore):
                await self.store.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            if isinstance(self.store, PostgresCredentialStore):
                await self.store.stop()

        self._setup_auth_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.jwt_auth_service = self

    @staticmethod
    def _exempt_paths(config: JwtAuthSettings) -> Tuple[str, ...]:
        exempt: Tuple[str, ...] = ("/health", "/metrics", "/auth/verify")
        if config.cache_admin_exempt:
            exempt += ("/cache",)
        return exempt

    def _create_store(self):
        if self.config.postgres_dsn:
            return PostgresCredentialStore(
                self.config.postgres_dsn,
                min_size=self.config.postgres_min_pool_size,
                max_size=self.config.postgres_max_pool_size,
            )
        self.logger.warning("No PostgreSQL DSN configured, using the in-memory credential store")
        return InMemoryCredentialStore.from_mapping(self.routes.seed)

    async def _check_dependencies(self) -> Dict[str, str]:
        check = getattr(self.store, "check_health", None)
        if check is None:
            return {}
        return {"credential_store": await check()}

    def _setup_auth_routes(self):
        """Forward-auth and cache management routes."""

        @self.app.get("/auth/verify")
        async def verify(request: Request):
            """
            Forward-auth check for gateways that authenticate with a subrequest.

            The original method and URI are read from ``X-Forwarded-Method``
            and ``X-Forwarded-Uri`` when present. On success the consumer
            and claim headers are returned as response headers.
            """
            gateway_request = GatewayRequest.from_starlette(request)
            forwarded_method = request.headers.get("X-Forwarded-Method")
            forwarded_uri = request.headers.get("X-Forwarded-Uri")
            if forwarded_method:
                gateway_request.method = forwarded_method.upper()
            if forwarded_uri:
                _apply_forwarded_uri(gateway_request, forwarded_uri)

            outcome = await self.authenticator.decide(
                gateway_request,
                self.routes.config_for(gateway_request.path),
            )
            if isinstance(outcome, Rejected):
                return rejection_response(outcome)

            response = Response(status_code=200)
            for name, value in gateway_request.forwarded_headers().items():
                response.headers[name] = value
            return response

        @self.app.delete("/cache/jwt-secrets/{key}")
        async def invalidate_secret(key: str) -> Dict[str, Any]:
            """Drop a cached JWT secret, e.g. after it was rotated or removed."""
            return {"key": key, "invalidated": self.credentials.invalidate(key)}

        @self.app.delete("/cache/consumers/{consumer_id}")
        async def invalidate_consumer(consumer_id: str) -> Dict[str, Any]:
            """Drop a cached consumer."""
            return {"consumer_id": consumer_id, "invalidated": self.consumers.invalidate(consumer_id)}

        @self.app.delete("/cache")
        async def invalidate_all() -> Dict[str, Any]:
            """Drop every cached secret and consumer."""
            return {"invalidated": self.cache.invalidate_all()}


def _apply_forwarded_uri(gateway_request: GatewayRequest, forwarded_uri: str) -> None:
    parts = urlsplit(forwarded_uri)
    gateway_request.path = parts.path or "/"
    query_params: Dict[str, List[str]] = {}
    for name, value in parse_qsl(parts.query, keep_blank_values=True):
        query_params.setdefault(name, []).append(value)
    gateway_request.query_params = query_params


def create_app():
    """Create FastAPI application."""
    service = JwtAuthService()
    return service.app


if __name__ == "__main__":
    service = JwtAuthService(config=get_config(SERVICE_NAME, int(os.getenv("PORT", DEFAULT_PORT)), JwtAuthSettings))
    service.run()

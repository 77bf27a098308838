"""
Per-request authentication decision for the JWT filter.
"""

import time
from typing import Optional, Protocol, TYPE_CHECKING

from shared.logging import get_logger, set_consumer_context
from .claim_headers import project_claim_headers
from .exceptions import (
    AnonymousConsumerNotFoundError,
    BackingStoreError,
    ConsumerNotFoundError,
    JwtAuthError,
    MultipleTokensError,
    NoTokenError,
    TokenLocationError,
    UnrecognizedTokenError,
)
from .models import (
    ANONYMOUS_HEADER,
    CONSUMER_CUSTOM_ID_HEADER,
    CONSUMER_ID_HEADER,
    CONSUMER_USERNAME_HEADER,
    AnonymousFallback,
    Authenticated,
    AuthOutcome,
    ConsumerRecord,
    GatewayRequest,
    RawToken,
    Rejected,
    SecretRecord,
    Skipped,
)
from .resolvers import ConsumerResolver, CredentialResolver
from .token_locator import locate_token
from .verifier import JwtVerifier

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from ..config import JwtPluginConfig


class RequestFilter(Protocol):
    """Anything that can decide how a gateway request is authenticated."""

    async def decide(self, request: GatewayRequest, config: "JwtPluginConfig") -> AuthOutcome:
        ...


class JwtAuthenticator:
    """
    Decides, for one request, between accepting a JWT, falling back to the
    anonymous consumer, rejecting, or not running at all.

    A request that carries a token is never degraded to anonymous access,
    whatever is wrong with the token.
    """

    def __init__(
        self,
        credentials: CredentialResolver,
        consumers: ConsumerResolver,
        *,
        verifier: Optional[JwtVerifier] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.credentials = credentials
        self.consumers = consumers
        self.verifier = verifier or JwtVerifier(credentials)
        self.metrics = metrics
        self.logger = get_logger("jwt_auth.authenticator")

    async def decide(self, request: GatewayRequest, config: "JwtPluginConfig") -> AuthOutcome:
        start = time.perf_counter()
        outcome = await self._decide(request, config)
        if self.metrics:
            self.metrics.record_auth_decision(
                outcome=type(outcome).__name__.lower(),
                status_code=outcome.status_code if isinstance(outcome, Rejected) else 200,
                duration=time.perf_counter() - start,
            )
        return outcome

    async def _decide(self, request: GatewayRequest, config: "JwtPluginConfig") -> AuthOutcome:
        if not config.run_on_preflight and request.method == "OPTIONS":
            return Skipped("preflight")

        if request.context.get("authenticated_credential") and config.anonymous:
            # A previous auth filter succeeded and filters are chained with
            # anonymous fallback, so one success is enough.
            return Skipped("already-authenticated")

        try:
            token = locate_token(request, config)
        except TokenLocationError as exc:
            return self._fatal(exc)

        try:
            consumer, secret = await self._authenticate(token, config)
        except BackingStoreError as exc:
            return self._fatal(exc)
        except JwtAuthError as exc:
            if token is not None:
                self.logger.warning(
                    "JWT rejected",
                    path=request.path,
                    status_code=exc.status_code,
                    reason=exc.message,
                )
                return Rejected(exc.status_code, exc.message)
            return await self._without_token(request, config, exc)

        self._set_consumer(request, consumer, secret, token)
        project_claim_headers(request, token, config.claim_headers)
        self.logger.info("JWT accepted", path=request.path, consumer_id=consumer.id)
        return Authenticated(consumer=consumer, credential=secret, token=token)

    async def _authenticate(self, token: RawToken, config: "JwtPluginConfig"):
        if token is None:
            raise NoTokenError()
        if isinstance(token, list):
            raise MultipleTokensError()
        if not isinstance(token, str):
            raise UnrecognizedTokenError()

        jwt, secret = await self.verifier.verify(token, config)

        consumer = await self.consumers.resolve(secret.consumer_id)
        if consumer is None:
            raise ConsumerNotFoundError(
                config.key_claim_name,
                self.verifier.secret_key_for(jwt, config.key_claim_name),
            )
        return consumer, secret

    async def _without_token(
        self,
        request: GatewayRequest,
        config: "JwtPluginConfig",
        error: JwtAuthError,
    ) -> AuthOutcome:
        if not config.anonymous:
            return Rejected(error.status_code, error.message)

        try:
            consumer = await self.consumers.resolve(config.anonymous)
            if consumer is None:
                raise AnonymousConsumerNotFoundError(config.anonymous)
        except BackingStoreError as exc:
            return self._fatal(exc)

        self._set_consumer(request, consumer, None, None)
        self.logger.info("Anonymous consumer assigned", path=request.path, consumer_id=consumer.id)
        return AnonymousFallback(consumer=consumer)

    def _set_consumer(
        self,
        request: GatewayRequest,
        consumer: ConsumerRecord,
        secret: Optional[SecretRecord],
        token: Optional[str],
    ) -> None:
        request.set_header(CONSUMER_ID_HEADER, consumer.id)
        request.set_header(CONSUMER_CUSTOM_ID_HEADER, consumer.custom_id)
        request.set_header(CONSUMER_USERNAME_HEADER, consumer.username)
        request.context["authenticated_consumer"] = consumer
        if secret is not None:
            request.context["authenticated_credential"] = secret
            request.context["authenticated_jwt_token"] = token
            # Another filter in the chain may have marked the request anonymous.
            request.set_header(ANONYMOUS_HEADER, None)
        else:
            request.set_header(ANONYMOUS_HEADER, "true")
        set_consumer_context(consumer.id)

    def _fatal(self, error: JwtAuthError) -> Rejected:
        self.logger.error(
            "Authentication failed unexpectedly",
            code=error.code,
            cause=getattr(error, "cause", None),
            details=error.details,
        )
        return Rejected(error.status_code, error.message)

"""
JWT auth service package for the API gateway.

The service decides, per request, whether a JWT-bearing caller is let
through, mapped to the anonymous consumer, or rejected:
- Token location: URI parameters, cookies, then the Authorization header
- Verification: secrets looked up by a claim of the token, cached single-flight
- Identity: consumer headers and claim headers forwarded upstream

Structure:
- app.main: FastAPI app, forward-auth and cache management routes.
- app.middleware: ASGI middleware applying the filter in-process.
- app.config: Service settings, per-route filter config, route table.
- app.auth: Token location, verification and the authentication decision.
- app.caching: Single-flight get-or-load cache.
- app.adapters: Credential stores (PostgreSQL, in-memory).
"""

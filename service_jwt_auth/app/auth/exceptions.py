"""
Classified failures of the JWT auth filter.

Every error carries the HTTP status and message the filter answers with.
Errors are raised where they are detected; only the authenticator decides
whether a failure is returned or replaced by the anonymous fallback.
"""

from typing import Any, Dict, Optional

from shared.errors import AccessLayerException

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


class JwtAuthError(AccessLayerException):
    """Base class for classified filter failures."""

    status_code = 401
    code = "AUTHENTICATION_ERROR"
    default_message: Any = "Unauthorized"

    def __init__(self, message: Any = None, details: Optional[Dict[str, Any]] = None):
        message = self.default_message if message is None else message
        super().__init__(self.code, message, details)


class TokenLocationError(JwtAuthError):
    status_code = 500
    code = "TOKEN_LOCATION_ERROR"
    default_message = UNEXPECTED_ERROR_MESSAGE


class NoTokenError(JwtAuthError):
    pass


class MultipleTokensError(JwtAuthError):
    default_message = "Multiple tokens provided"


class UnrecognizedTokenError(JwtAuthError):
    default_message = "Unrecognizable token"


class MalformedTokenError(JwtAuthError):
    """The compact token could not be decoded."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Bad token; {reason}")


class MissingSecretKeyClaimError(JwtAuthError):
    def __init__(self, claim_name: str):
        super().__init__(f"No mandatory '{claim_name}' in claims")


class SecretNotFoundError(JwtAuthError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"

    def __init__(self, claim_name: str):
        super().__init__(f"No credentials found for given '{claim_name}'")


class AlgorithmMismatchError(JwtAuthError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"
    default_message = "Invalid algorithm"


class InvalidKeyMaterialError(JwtAuthError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"
    default_message = "Invalid key/secret"


class SignatureInvalidError(JwtAuthError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"
    default_message = "Invalid signature"


class RegisteredClaimsError(JwtAuthError):
    """One or more registered claims failed; message maps claim to error."""

    def __init__(self, errors: Dict[str, Any]):
        self.errors = errors
        super().__init__(dict(errors))


class ConsumerNotFoundError(JwtAuthError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"

    def __init__(self, claim_name: str, secret_key: Any):
        super().__init__(f"Could not find consumer for '{claim_name}={secret_key}'")


class BackingStoreError(JwtAuthError):
    """The credential store or cache failed; always fatal for the request."""

    status_code = 500
    code = "BACKING_STORE_ERROR"
    default_message = UNEXPECTED_ERROR_MESSAGE

    def __init__(self, cause: str, details: Optional[Dict[str, Any]] = None):
        self.cause = cause
        super().__init__(UNEXPECTED_ERROR_MESSAGE, details)


class AnonymousConsumerNotFoundError(BackingStoreError):
    code = "ANONYMOUS_CONSUMER_NOT_FOUND"

    def __init__(self, consumer_id: str):
        super().__init__(f'anonymous consumer "{consumer_id}" not found')

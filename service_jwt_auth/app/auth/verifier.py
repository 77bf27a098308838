"""
JWT verification against secrets registered in the credential store.
"""

import time
from typing import Callable, Tuple

from shared.logging import get_logger
from .exceptions import (
    AlgorithmMismatchError,
    InvalidKeyMaterialError,
    MissingSecretKeyClaimError,
    RegisteredClaimsError,
    SecretNotFoundError,
    SignatureInvalidError,
)
from .jwt_parser import DecodedJwt, b64_decode, decode_token
from .models import SecretRecord
from .resolvers import CredentialResolver

DEFAULT_ALGORITHM = "HS256"


class JwtVerifier:
    """
    Establishes trust in a token.

    The secret lookup key is read from the unverified token (claims first,
    then header), so everything up to the signature check treats it as
    attacker-controlled input: the stored record, not the token, decides the
    algorithm and the key.
    """

    def __init__(self, credentials: CredentialResolver, clock: Callable[[], float] = time.time):
        self.credentials = credentials
        self.clock = clock
        self.logger = get_logger("jwt_auth.verifier")

    async def verify(self, token: str, config) -> Tuple[DecodedJwt, SecretRecord]:
        jwt = decode_token(token)

        secret_key = self.secret_key_for(jwt, config.key_claim_name)
        if secret_key is None:
            raise MissingSecretKeyClaimError(config.key_claim_name)

        secret = await self.credentials.resolve(secret_key)
        if secret is None:
            raise SecretNotFoundError(config.key_claim_name)

        algorithm = secret.algorithm or DEFAULT_ALGORITHM
        if jwt.header.get("alg") != algorithm:
            raise AlgorithmMismatchError()

        key_material = secret.secret if algorithm == DEFAULT_ALGORITHM else secret.rsa_public_key
        if config.secret_is_base64:
            key_material = b64_decode(key_material)
        if not key_material:
            raise InvalidKeyMaterialError()

        if not jwt.verify_signature(key_material, algorithm):
            raise SignatureInvalidError()

        errors = jwt.verify_registered_claims(config.claims_to_verify, now=self.clock())
        if errors:
            raise RegisteredClaimsError(errors)

        return jwt, secret

    @staticmethod
    def secret_key_for(jwt: DecodedJwt, claim_name: str):
        value = jwt.claims.get(claim_name)
        if value is None:
            value = jwt.header.get(claim_name)
        return value

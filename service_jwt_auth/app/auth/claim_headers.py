"""
Project claim values of an accepted token into upstream request headers.
"""

import json
from typing import Any, Iterable, Optional

from shared.logging import get_logger
from .claim_path import MISSING
from .exceptions import MalformedTokenError
from .jwt_parser import decode_token
from .models import GatewayRequest

logger = get_logger("jwt_auth.claim_headers")


def render_header_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=True)
    return str(value)


def project_claim_headers(request: GatewayRequest, token: Optional[str], mappings: Iterable) -> None:
    """
    Set one upstream header per mapping whose claim is present in ``token``.

    Only call this with a token that already passed verification; the token
    is decoded again but not re-verified. Absent or null claims are skipped.
    """
    if token is None:
        return

    try:
        decoded = decode_token(token)
    except MalformedTokenError:
        return

    for mapping in mappings:
        value = mapping.claim_path.evaluate(decoded.claims)
        if value is MISSING or value is None:
            continue
        request.set_header(mapping.header, render_header_value(value))
        logger.debug("Projected claim header", claim_path=str(mapping.claim_path), header=mapping.header)

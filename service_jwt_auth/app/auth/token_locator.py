"""
Locate the raw JWT carried by a request.
"""

import re

from .exceptions import TokenLocationError
from .models import GatewayRequest, RawToken

BEARER_PATTERN = re.compile(r"\s*[Bb]earer\s+(.+)")


def locate_token(request: GatewayRequest, config) -> RawToken:
    """
    Return the token in ``request`` or ``None``.

    URI parameters are checked first, then cookies, then the
    ``Authorization`` header; the first match wins. A URI parameter given
    more than once is returned as the list of its values.
    """
    for name in config.uri_param_names:
        values = request.query_params.get(name)
        if values is None:
            continue
        if isinstance(values, str):
            return values
        if len(values) == 1:
            return values[0]
        if values:
            return list(values)

    for name in config.cookie_names:
        cookie = request.cookies.get(name)
        if cookie:
            return cookie

    authorization = request.headers.get("authorization")
    if authorization is None:
        return None

    if isinstance(authorization, bytes):
        try:
            authorization = authorization.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise TokenLocationError(details={"error": f"undecodable Authorization header: {exc}"}) from exc

    match = BEARER_PATTERN.search(authorization)
    if match:
        return match.group(1)
    return None

"""
Header and auth policy for outgoing requests
"""

import base64
from typing import Dict, Tuple

from relay.models.destination import (
    ApiKeyAuth,
    AuthConfig,
    BasicAuth,
    BearerAuth,
    DestinationMapping,
)

# Connection-level headers of the inbound request; the HTTP client sets
# its own for the forwarded request.
HOP_BY_HOP_HEADERS = frozenset(
    {
        "host",
        "content-length",
        "connection",
        "transfer-encoding",
        "keep-alive",
        "upgrade",
        "te",
        "trailer",
        "expect",
    }
)


def build_headers(inbound: Dict[str, str], mapping: DestinationMapping) -> Dict[str, str]:
    """
    Apply a mapping's header rules to the inbound header set

    Removal is case-insensitive and runs before addition, so an added header
    survives even when a differently-cased name was removed.

    Args:
        inbound: Headers of the received webhook
        mapping: Destination mapping with add/remove rules

    Returns:
        New header dict (auth not yet applied)
    """
    headers = {
        name: value
        for name, value in inbound.items()
        if name.lower() not in mapping.remove_headers
        and name.lower() not in HOP_BY_HOP_HEADERS
    }

    # Add wins on conflict, including a differently-cased inbound duplicate
    added_lower = {name.lower() for name in mapping.add_headers}
    headers = {name: value for name, value in headers.items() if name.lower() not in added_lower}
    headers.update(mapping.add_headers)

    return headers


def apply_auth(
    headers: Dict[str, str], params: Dict[str, str], auth: AuthConfig
) -> Tuple[Dict[str, str], Dict[str, str]]:
    """
    Apply an auth variant to the outgoing headers and query parameters

    Args:
        headers: Outgoing headers
        params: Outgoing query parameters
        auth: Auth variant of the mapping

    Returns:
        Tuple of (headers, params), both new dicts
    """
    headers = dict(headers)
    params = dict(params)

    if isinstance(auth, BasicAuth):
        credentials = base64.b64encode(f"{auth.username}:{auth.password}".encode()).decode()
        _set_header(headers, "Authorization", f"Basic {credentials}")
    elif isinstance(auth, BearerAuth):
        _set_header(headers, "Authorization", f"Bearer {auth.token}")
    elif isinstance(auth, ApiKeyAuth):
        if auth.key_in == "header":
            _set_header(headers, auth.key_name, auth.key_value)
        else:
            params[auth.key_name] = auth.key_value

    return headers, params


def _set_header(headers: Dict[str, str], name: str, value: str) -> None:
    for existing in [h for h in headers if h.lower() == name.lower()]:
        del headers[existing]
    headers[name] = value

from typing import Any, Callable, Dict, Mapping, Optional

from ...application.ports.identity_provider import Identity, IdentityResolver
from ...exceptions import AuthorizationError

TokenVerifier = Callable[[str], Optional[Dict[str, Any]]]


def extract_bearer_token(headers: Mapping[str, str]) -> str:
    auth_header = headers.get("authorization") or ""
    if not auth_header.startswith("Bearer "):
        raise AuthorizationError("Unauthorized: Missing Authorization header")
    token = auth_header[len("Bearer "):].strip()
    if not token:
        raise AuthorizationError("Unauthorized: Missing Authorization header")
    return token


class BearerTokenIdentityResolver(IdentityResolver):
    """Resolves ``Authorization: Bearer`` tokens through a claims verifier.

    The verifier returns decoded claims or ``None`` for an invalid token.
    The subject comes from ``uid`` (Firebase) or ``sub``, the role from the
    ``role`` custom claim.
    """

    def __init__(self, verify: TokenVerifier):
        self._verify = verify

    def resolve(self, headers: Mapping[str, str]) -> Identity:
        claims = self._verify(extract_bearer_token(headers))
        if not claims:
            raise AuthorizationError("Unauthorized: Invalid or expired token")
        uid = claims.get("uid") or claims.get("sub")
        role = claims.get("role")
        if not uid or not role:
            raise AuthorizationError("Unauthorized: Token is missing uid or role")
        return Identity(id=str(uid), role=str(role))

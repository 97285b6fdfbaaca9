from typing import Mapping

from ...application.ports.identity_provider import Identity, IdentityResolver
from ...exceptions import AuthorizationError

USER_ID_HEADER = "x-user-id"
USER_ROLE_HEADER = "x-user-role"


class DevHeaderIdentityResolver(IdentityResolver):
    """Trusts the ``x-user-id`` / ``x-user-role`` header pair. Development only."""

    def resolve(self, headers: Mapping[str, str]) -> Identity:
        uid = headers.get(USER_ID_HEADER)
        role = headers.get(USER_ROLE_HEADER)
        if not uid or not role:
            raise AuthorizationError("Unauthorized: Missing dev auth headers")
        return Identity(id=uid, role=role)

from ...application.ports.identity_provider import Identity, IdentityResolver
from ...config import Settings
from ...exceptions import AuthorizationError
from .bearer_token_resolver import BearerTokenIdentityResolver
from .dev_header_resolver import DevHeaderIdentityResolver


def build_identity_resolver(settings: Settings) -> IdentityResolver:
    mode = settings.AUTH_MODE.lower()
    if mode == "dev":
        return DevHeaderIdentityResolver()
    if mode == "firebase":
        from .firebase_service import FirebaseTokenVerifier
        return BearerTokenIdentityResolver(FirebaseTokenVerifier(settings))
    if mode == "jwt":
        from .jwt_service import JwtTokenVerifier
        return BearerTokenIdentityResolver(JwtTokenVerifier(settings))
    raise ValueError(f"Unknown AUTH_MODE: {settings.AUTH_MODE}")


def require_role(identity: Identity, *roles: str) -> Identity:
    if identity.role not in roles:
        raise AuthorizationError("Forbidden: Insufficient permissions")
    return identity


__all__ = [
    "BearerTokenIdentityResolver",
    "DevHeaderIdentityResolver",
    "build_identity_resolver",
    "require_role",
]

from dataclasses import dataclass
from typing import Mapping, Protocol


@dataclass(frozen=True)
class Identity:
    id: str
    role: str


class IdentityResolver(Protocol):
    def resolve(self, headers: Mapping[str, str]) -> Identity:
        """Return the verified caller or raise AuthorizationError."""
        ...

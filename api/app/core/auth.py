import hashlib
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from uuid import uuid4


class IdentityKind(str, Enum):
    ANONYMOUS = "anonymous"
    TRUSTED = "trusted"


@dataclass(slots=True, frozen=True)
class Identity:
    kind: IdentityKind
    subject: str | None = None

    @property
    def trusted(self) -> bool:
        return self.kind is IdentityKind.TRUSTED


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def resolve_visitor_token(cookies: Mapping[str, str], cookie_name: str) -> tuple[str, bool]:
    """Return the caller's visitor token and whether it was minted for this request."""
    existing = cookies.get(cookie_name)
    if existing and existing.strip():
        return existing, False
    return uuid4().hex, True


def resolve_identity(visitor_token: str, *, trusted: bool) -> Identity:
    if trusted:
        return Identity(kind=IdentityKind.TRUSTED)
    return Identity(kind=IdentityKind.ANONYMOUS, subject=token_digest(visitor_token))

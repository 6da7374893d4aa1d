from __future__ import annotations

from typing import Optional, Protocol

from .model import Actor


class IdentityRepository(Protocol):
    """Port onto the external identity provider.

    Token issuance and login live outside this service; here a bearer
    credential is only mapped onto an :class:`Actor`.
    """

    def resolve_token(self, token: str) -> Optional[Actor]:
        raise NotImplementedError

"""
Claims module: exclusive ownership of content.

Any account may claim a piece of content (in practice a content hash) that
nobody holds yet. A claim can only be revoked by its current owner. An
account may hold many claims; a content key has at most one owner.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional, Type

from chainlet.errors import (
    AlreadyClaimed,
    InvalidArgument,
    NoSuchClaim,
    NotOwner,
    UnknownCall,
)
from chainlet.events import ClaimCreated, ClaimRevoked
from chainlet.support import (
    ClaimsConfig,
    Dispatch,
    EventSource,
    check_account,
    require_config,
)


class Call:
    """Calls exposed by the claims module."""

    @dataclass(frozen=True)
    class CreateClaim:
        content: Any

        name: ClassVar[str] = "create_claim"

    @dataclass(frozen=True)
    class RevokeClaim:
        content: Any

        name: ClassVar[str] = "revoke_claim"

    VARIANTS = (CreateClaim, RevokeClaim)


class Pallet(Dispatch, EventSource):
    """Content → owner registry."""

    name = "claims"

    def __init__(self, config: Type[ClaimsConfig]):
        require_config(config, ClaimsConfig)
        EventSource.__init__(self)
        self.config = config
        self._claims: Dict[Any, Any] = {}

    def _check_content(self, content) -> None:
        if not isinstance(content, self.config.Content):
            raise TypeError(
                f"expected {self.config.Content.__name__} content, got {type(content).__name__}"
            )

    def get_claim(self, content) -> Optional[Any]:
        self._check_content(content)
        return self._claims.get(content)

    def create_claim(self, caller, content) -> None:
        check_account(self.config, caller)
        owner = self.get_claim(content)
        if owner is not None:
            raise AlreadyClaimed(content, owner)
        self._claims[content] = caller
        self.deposit_event(ClaimCreated(owner=caller, content=content))

    def revoke_claim(self, caller, content) -> None:
        check_account(self.config, caller)
        owner = self.get_claim(content)
        if owner is None:
            raise NoSuchClaim(content)
        if owner != caller:
            raise NotOwner(content, caller, owner)
        del self._claims[content]
        self.deposit_event(ClaimRevoked(owner=caller, content=content))

    def claims(self) -> Dict[Any, Any]:
        return dict(self._claims)

    def dispatch(self, caller, call) -> None:
        if not isinstance(call, Call.VARIANTS):
            raise UnknownCall(f"claims cannot dispatch {type(call).__name__}")
        try:
            if isinstance(call, Call.CreateClaim):
                self.create_claim(caller, call.content)
            elif isinstance(call, Call.RevokeClaim):
                self.revoke_claim(caller, call.content)
        except (TypeError, ValueError) as e:
            raise InvalidArgument(f"claims.{call.name}: {e}") from e

    def __repr__(self) -> str:
        return f"claims.Pallet(claims={len(self._claims)})"

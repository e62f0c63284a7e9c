"""
Shared plumbing for chainlet modules.

Configuration capabilities
──────────────────────────

Each module is written once against an abstract set of types and instantiated
with whatever concrete types the runtime supplies. A capability is a class
listing the type names it requires in ``__required_types__``; a concrete
configuration is a subclass that binds every one of those names:

    class SystemConfig:                 AccountId, BlockNumber, Nonce
    class BalancesConfig(SystemConfig): + Balance
    class ClaimsConfig(SystemConfig):   + Content

    class RuntimeConfig(BalancesConfig, ClaimsConfig):
        AccountId = str
        BlockNumber = U32
        ...

Modules call ``require_config`` in their constructor, so a configuration that
forgets a binding fails at composition time rather than mid-block.

Dispatch
────────

A module with callable operations implements ``Dispatch``: it receives a
caller and one of its own ``Call`` variants and either returns normally or
raises a ``DispatchError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Generic, List, Tuple, Type, TypeVar

from chainlet.primitives import Unsigned

C = TypeVar("C")
CallT = TypeVar("CallT")


# =============================================================================
# CONFIGURATION CAPABILITIES
# =============================================================================

class SystemConfig:
    """Types shared by every module."""

    __required_types__: Tuple[str, ...] = ("AccountId", "BlockNumber", "Nonce")
    __numeric_types__: Tuple[str, ...] = ("BlockNumber", "Nonce")


class BalancesConfig(SystemConfig):
    """Adds the Balance type."""

    __required_types__ = SystemConfig.__required_types__ + ("Balance",)
    __numeric_types__ = SystemConfig.__numeric_types__ + ("Balance",)


class ClaimsConfig(SystemConfig):
    """Adds the claimable Content type."""

    __required_types__ = SystemConfig.__required_types__ + ("Content",)


def require_config(config: Any, capability: Type[SystemConfig]) -> None:
    """
    Check that ``config`` provides ``capability``.

    Raises TypeError if the config does not derive from the capability, if a
    required type is unbound, or if a numeric binding is not a fixed-width
    unsigned integer.
    """
    if not (isinstance(config, type) and issubclass(config, capability)):
        raise TypeError(f"{config!r} does not implement {capability.__name__}")

    # Every name any capability in the MRO asks for must be bound.
    required: List[str] = []
    numeric: List[str] = []
    for klass in config.__mro__:
        required.extend(getattr(klass, "__required_types__", ()))
        numeric.extend(getattr(klass, "__numeric_types__", ()))

    missing = [name for name in dict.fromkeys(required) if not isinstance(getattr(config, name, None), type)]
    if missing:
        raise TypeError(f"{config.__name__} does not bind {', '.join(missing)}")

    for name in dict.fromkeys(numeric):
        bound = getattr(config, name)
        if not issubclass(bound, Unsigned):
            raise TypeError(f"{config.__name__}.{name} must be an Unsigned type, got {bound.__name__}")


def check_account(config: Any, account: Any) -> None:
    if not isinstance(account, config.AccountId):
        raise TypeError(
            f"expected {config.AccountId.__name__} account id, got {type(account).__name__}"
        )


# =============================================================================
# DISPATCH
# =============================================================================

class Dispatch(ABC, Generic[C, CallT]):
    """Something that executes calls on behalf of a caller."""

    @abstractmethod
    def dispatch(self, caller: C, call: CallT) -> None:
        """Execute ``call`` as ``caller``; raise DispatchError on failure."""


class EventSource:
    """
    Buffer for events a module emits during a call.

    Modules never reach into the runtime; the runtime drains the buffer
    after each dispatch.
    """

    def __init__(self) -> None:
        self._pending_events: List[Any] = []

    def deposit_event(self, event: Any) -> None:
        self._pending_events.append(event)

    def take_events(self) -> List[Any]:
        events, self._pending_events = self._pending_events, []
        return events


# =============================================================================
# BLOCK STRUCTURE
# =============================================================================

@dataclass(frozen=True)
class Header:
    """Block header carrying the intended block number."""
    block_number: int

    def __post_init__(self) -> None:
        number = self.block_number
        if isinstance(number, Unsigned):
            object.__setattr__(self, "block_number", int(number))
        elif isinstance(number, bool) or not isinstance(number, int):
            raise TypeError(f"Header expects int block_number, got {type(number).__name__}")
        elif number < 0:
            raise ValueError(f"block_number must be non-negative, got {number}")


@dataclass(frozen=True)
class Extrinsic(Generic[C, CallT]):
    """A single caller-attributed call submitted for inclusion in a block."""
    caller: C
    call: CallT


@dataclass(frozen=True)
class Block(Generic[C, CallT]):
    """A header plus extrinsics in execution order."""
    header: Header
    extrinsics: Tuple[Extrinsic, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Freeze list input so the block cannot be reordered after construction.
        if not isinstance(self.extrinsics, tuple):
            object.__setattr__(self, "extrinsics", tuple(self.extrinsics))

    @property
    def block_number(self) -> int:
        return self.header.block_number


__all__ = [
    "SystemConfig",
    "BalancesConfig",
    "ClaimsConfig",
    "require_config",
    "check_account",
    "Dispatch",
    "EventSource",
    "Header",
    "Extrinsic",
    "Block",
]

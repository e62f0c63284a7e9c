"""
chainlet error taxonomy.

Two tiers, matching the block executor's failure policy:

    DispatchError    raised by a module call; recoverable. The executor
                     records it against the extrinsic and moves on.
    ExecutionError   raised by the executor itself; fatal to the whole
                     block call.

Every module error leaves state untouched: checks happen before writes.
"""

from __future__ import annotations

from typing import Any, List


class ChainletError(Exception):
    """Base exception for chainlet."""
    pass


# =============================================================================
# DISPATCH ERRORS
# =============================================================================

class DispatchError(ChainletError):
    """
    A module-level failure as seen across the dispatch boundary.

    ``kind`` names the originating failure so receipts and logs can report
    it without matching on exception classes.
    """

    kind = "DispatchError"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class InsufficientFunds(DispatchError):
    kind = "InsufficientFunds"

    def __init__(self, account: Any, available: Any, required: Any):
        self.account = account
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient funds: {account} has {available}, needs {required}",
            account=account,
            available=available,
            required=required,
        )


class ArithmeticOverflow(DispatchError):
    kind = "ArithmeticOverflow"


class NonceOverflow(DispatchError):
    kind = "NonceOverflow"


class AlreadyClaimed(DispatchError):
    kind = "AlreadyClaimed"

    def __init__(self, content: Any, owner: Any):
        self.content = content
        self.owner = owner
        super().__init__(f"Content {content!r} already claimed", content=content, owner=owner)


class NoSuchClaim(DispatchError):
    kind = "NoSuchClaim"

    def __init__(self, content: Any):
        self.content = content
        super().__init__(f"Content {content!r} has no claim", content=content)


class NotOwner(DispatchError):
    kind = "NotOwner"

    def __init__(self, content: Any, caller: Any, owner: Any):
        self.content = content
        self.caller = caller
        self.owner = owner
        super().__init__(
            f"{caller} is not the owner of {content!r}",
            content=content,
            caller=caller,
            owner=owner,
        )


class UnknownCall(DispatchError):
    kind = "UnknownCall"


class InvalidArgument(DispatchError):
    """A call argument has the wrong type or is out of range."""
    kind = "InvalidArgument"


# =============================================================================
# EXECUTION ERRORS
# =============================================================================

class ExecutionError(ChainletError):
    """A block-level failure; the block is rejected as a whole."""

    kind = "ExecutionError"


class BlockNumberMismatch(ExecutionError):
    kind = "BlockNumberMismatch"

    def __init__(self, expected: int, got: int):
        self.expected = expected
        self.got = got
        super().__init__(f"Block number mismatch: expected {expected}, got {got}")


class BlockNumberOverflow(ExecutionError):
    kind = "BlockNumberOverflow"


class BlockTooLarge(ExecutionError):
    kind = "BlockTooLarge"

    def __init__(self, count: int, limit: int):
        self.count = count
        self.limit = limit
        super().__init__(f"Block carries {count} extrinsics, limit is {limit}")


class ConcurrentExecution(ExecutionError):
    kind = "ConcurrentExecution"


class InvalidExtrinsic(ExecutionError):
    """An extrinsic in the block is structurally malformed."""
    kind = "InvalidExtrinsic"

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Extrinsic {index} is malformed: {reason}")


# =============================================================================
# INPUT ERRORS
# =============================================================================

class GenesisError(ChainletError):
    """Genesis or block file failed validation."""

    def __init__(self, source: str, errors: List[str]):
        self.source = source
        self.errors = errors
        detail = "; ".join(errors[:5])
        super().__init__(f"invalid {source}: {detail}")


__all__ = [
    "ChainletError",
    "DispatchError",
    "InsufficientFunds",
    "ArithmeticOverflow",
    "NonceOverflow",
    "AlreadyClaimed",
    "NoSuchClaim",
    "NotOwner",
    "UnknownCall",
    "InvalidArgument",
    "ExecutionError",
    "BlockNumberMismatch",
    "BlockNumberOverflow",
    "BlockTooLarge",
    "ConcurrentExecution",
    "InvalidExtrinsic",
    "GenesisError",
]

"""
Bounded unsigned integers for ledger arithmetic.

Python integers never overflow, so the runtime binds its numeric types
(Balance, BlockNumber, Nonce) to fixed-width unsigned values. Every
arithmetic step that could leave the representable range is *checked*:
it returns ``None`` instead of wrapping, and the caller decides which
error to raise.

    U32     block numbers, nonces
    U64     spare width for custom configurations
    U128    balances
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional, TypeVar, Union

U = TypeVar("U", bound="Unsigned")


@dataclass(frozen=True, order=True)
class Unsigned:
    """
    Fixed-width unsigned integer.

    Subclasses set ``BITS``. Values compare and hash by magnitude, but only
    against the same width: ``U32(1) == U128(1)`` is False and ordering
    across widths raises TypeError.
    """
    value: int = 0

    BITS: ClassVar[int] = 0

    def __post_init__(self) -> None:
        if type(self).BITS <= 0:
            raise TypeError(f"{type(self).__name__} has no bit width; use a concrete subclass")
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(
                f"{type(self).__name__} expects int, got {type(self.value).__name__}"
            )
        if not 0 <= self.value <= self.max_value():
            raise ValueError(
                f"{self.value} out of range for {type(self).__name__} "
                f"(0..{self.max_value()})"
            )

    @classmethod
    def max_value(cls) -> int:
        return (1 << cls.BITS) - 1

    @classmethod
    def zero(cls: type[U]) -> U:
        return cls(0)

    @classmethod
    def one(cls: type[U]) -> U:
        return cls(1)

    @classmethod
    def max(cls: type[U]) -> U:
        return cls(cls.max_value())

    @classmethod
    def coerce(cls: type[U], value: Union["Unsigned", int]) -> U:
        """Accept a same-width value or a plain int."""
        if isinstance(value, Unsigned):
            if type(value) is not cls:
                raise TypeError(f"cannot use {type(value).__name__} as {cls.__name__}")
            return value  # type: ignore[return-value]
        return cls(value)

    def _operand(self, other: Union["Unsigned", int]) -> int:
        if isinstance(other, Unsigned):
            if type(other) is not type(self):
                raise TypeError(
                    f"mixed widths: {type(self).__name__} and {type(other).__name__}"
                )
            return other.value
        if isinstance(other, bool) or not isinstance(other, int):
            raise TypeError(f"unsupported operand type {type(other).__name__}")
        return other

    def checked_add(self: U, other: Union["Unsigned", int]) -> Optional[U]:
        """Return ``self + other`` or None if the result leaves the range."""
        result = self.value + self._operand(other)
        if result < 0 or result > self.max_value():
            return None
        return type(self)(result)

    def checked_sub(self: U, other: Union["Unsigned", int]) -> Optional[U]:
        """Return ``self - other`` or None on underflow."""
        result = self.value - self._operand(other)
        if result < 0 or result > self.max_value():
            return None
        return type(self)(result)

    def increment(self: U) -> Optional[U]:
        return self.checked_add(1)

    def is_zero(self) -> bool:
        return self.value == 0

    def __int__(self) -> int:
        return self.value

    def __index__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value})"


class U32(Unsigned):
    BITS = 32


class U64(Unsigned):
    BITS = 64


class U128(Unsigned):
    BITS = 128


__all__ = ["Unsigned", "U32", "U64", "U128"]

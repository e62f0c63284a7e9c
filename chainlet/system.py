"""
System module: block height and per-account nonces.

The authoritative source of "when". It has no calls of its own; the block
executor drives it directly before dispatching anything.
"""

from __future__ import annotations

from typing import Any, Dict, Type

from chainlet.errors import BlockNumberOverflow, NonceOverflow
from chainlet.support import SystemConfig, check_account, require_config


class Pallet:
    """Block counter and nonce table."""

    def __init__(self, config: Type[SystemConfig]):
        require_config(config, SystemConfig)
        self.config = config
        self._block_number = config.BlockNumber.zero()
        self._nonces: Dict[Any, Any] = {}

    def block_number(self):
        """Current block number; zero before the first block."""
        return self._block_number

    def increment_block_number(self) -> None:
        """
        Advance the block counter by one.

        At the maximum representable value the counter is left alone and
        ``BlockNumberOverflow`` is raised.
        """
        nxt = self._block_number.increment()
        if nxt is None:
            raise BlockNumberOverflow(
                f"block number {self._block_number} cannot advance past "
                f"{self.config.BlockNumber.__name__} range"
            )
        self._block_number = nxt

    def nonce(self, who):
        check_account(self.config, who)
        return self._nonces.get(who, self.config.Nonce.zero())

    def increment_nonce(self, who) -> None:
        """Advance ``who``'s nonce by one; raises NonceOverflow at the maximum."""
        current = self.nonce(who)
        nxt = current.increment()
        if nxt is None:
            raise NonceOverflow(f"nonce of {who} cannot advance past {current}", account=who)
        self._nonces[who] = nxt

    def nonces(self) -> Dict[Any, Any]:
        return dict(self._nonces)

    def __repr__(self) -> str:
        return f"system.Pallet(block_number={self._block_number!r}, accounts={len(self._nonces)})"

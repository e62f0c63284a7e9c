"""
Balances module: per-account balances and checked transfers.

Storage is a map from account to balance; a missing entry means zero.
Successful transfers conserve the total. The only way to change the total
is the administrative ``set_balance`` (used for genesis and tests), which has
no call variant and cannot be reached from an extrinsic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Type

from chainlet.errors import ArithmeticOverflow, InsufficientFunds, InvalidArgument, UnknownCall
from chainlet.events import Transferred
from chainlet.support import (
    BalancesConfig,
    Dispatch,
    EventSource,
    check_account,
    require_config,
)


class Call:
    """Calls exposed by the balances module."""

    @dataclass(frozen=True)
    class Transfer:
        to: Any
        amount: Any

        name: ClassVar[str] = "transfer"

    VARIANTS = (Transfer,)


class Pallet(Dispatch, EventSource):
    """Account balances."""

    name = "balances"

    def __init__(self, config: Type[BalancesConfig]):
        require_config(config, BalancesConfig)
        EventSource.__init__(self)
        self.config = config
        self._balances: Dict[Any, Any] = {}

    def get_balance(self, who):
        check_account(self.config, who)
        return self._balances.get(who, self.config.Balance.zero())

    def set_balance(self, who, amount) -> None:
        """Overwrite ``who``'s balance. Administrative only."""
        check_account(self.config, who)
        self._balances[who] = self.config.Balance.coerce(amount)

    def transfer(self, sender, receiver, amount) -> None:
        """
        Move ``amount`` from ``sender`` to ``receiver``.

        Raises InsufficientFunds when the sender cannot cover the amount and
        ArithmeticOverflow when either side would leave the Balance range.
        Both new balances are computed before either is written.
        """
        check_account(self.config, receiver)
        amount = self.config.Balance.coerce(amount)
        sender_balance = self.get_balance(sender)

        if amount.is_zero():
            self.deposit_event(Transferred(sender=sender, receiver=receiver, amount=amount))
            return

        if amount > sender_balance:
            raise InsufficientFunds(sender, sender_balance, amount)

        new_sender_balance = sender_balance.checked_sub(amount)
        if new_sender_balance is None:
            raise ArithmeticOverflow(f"underflow subtracting {amount} from {sender}")

        # Read after the debit so a self-transfer credits what it debited.
        receiver_balance = new_sender_balance if receiver == sender else self.get_balance(receiver)
        new_receiver_balance = receiver_balance.checked_add(amount)
        if new_receiver_balance is None:
            raise ArithmeticOverflow(f"overflow adding {amount} to {receiver}")

        self._balances[sender] = new_sender_balance
        self._balances[receiver] = new_receiver_balance

        self.deposit_event(Transferred(sender=sender, receiver=receiver, amount=amount))

    def total_issuance(self) -> int:
        return sum(int(b) for b in self._balances.values())

    def balances(self) -> Dict[Any, Any]:
        return dict(self._balances)

    def dispatch(self, caller, call) -> None:
        if not isinstance(call, Call.VARIANTS):
            raise UnknownCall(f"balances cannot dispatch {type(call).__name__}")
        try:
            if isinstance(call, Call.Transfer):
                self.transfer(caller, call.to, call.amount)
        except (TypeError, ValueError) as e:
            raise InvalidArgument(f"balances.{call.name}: {e}") from e

    def __repr__(self) -> str:
        return f"balances.Pallet(accounts={len(self._balances)}, total={self.total_issuance()})"

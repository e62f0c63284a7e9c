"""
Balances module tests: checked transfers and conservation.

Run with: pytest tests/test_balances.py -v
"""

import pytest

from chainlet import balances
from chainlet.errors import (
    ArithmeticOverflow,
    DispatchError,
    InsufficientFunds,
    InvalidArgument,
    UnknownCall,
)
from chainlet.events import Transferred
from chainlet.primitives import U32, U128
from chainlet.runtime import RuntimeConfig


@pytest.fixture
def pallet():
    p = balances.Pallet(RuntimeConfig)
    p.set_balance("alice", 100)
    return p


class TestBalanceStorage:
    """Reads and administrative writes."""

    def test_unknown_account_is_zero(self, pallet):
        assert pallet.get_balance("nobody") == U128(0)

    def test_set_balance_overwrites(self, pallet):
        pallet.set_balance("alice", 5)
        assert pallet.get_balance("alice") == U128(5)

    def test_set_balance_accepts_balance_type(self, pallet):
        pallet.set_balance("bob", U128(9))
        assert pallet.get_balance("bob") == U128(9)

    def test_set_balance_rejects_other_width(self, pallet):
        with pytest.raises(TypeError):
            pallet.set_balance("bob", U32(9))

    def test_total_issuance(self, pallet):
        pallet.set_balance("bob", 50)
        assert pallet.total_issuance() == 150


class TestTransfer:
    """Transfer semantics."""

    def test_basic_transfer(self, pallet):
        pallet.transfer("alice", "bob", 30)
        assert pallet.get_balance("alice") == U128(70)
        assert pallet.get_balance("bob") == U128(30)

    def test_transfer_entire_balance(self, pallet):
        pallet.transfer("alice", "bob", 100)
        assert pallet.get_balance("alice") == U128(0)
        assert pallet.get_balance("bob") == U128(100)

    def test_insufficient_funds_leaves_state(self, pallet):
        before = pallet.balances()
        with pytest.raises(InsufficientFunds) as exc:
            pallet.transfer("alice", "bob", 101)
        assert exc.value.kind == "InsufficientFunds"
        assert exc.value.available == U128(100)
        assert exc.value.required == U128(101)
        assert pallet.balances() == before

    def test_unfunded_sender(self, pallet):
        with pytest.raises(InsufficientFunds):
            pallet.transfer("bob", "alice", 1)
        assert pallet.get_balance("bob") == U128(0)

    def test_self_transfer_is_noop(self, pallet):
        pallet.transfer("alice", "alice", 40)
        assert pallet.get_balance("alice") == U128(100)

    def test_self_transfer_still_needs_funds(self, pallet):
        with pytest.raises(InsufficientFunds):
            pallet.transfer("alice", "alice", 101)

    def test_zero_transfer_writes_nothing(self, pallet):
        pallet.transfer("alice", "bob", 0)
        assert "bob" not in pallet.balances()
        assert pallet.get_balance("alice") == U128(100)

    def test_receiver_overflow_leaves_state(self, pallet):
        pallet.set_balance("bob", U128.max_value())
        before = pallet.balances()
        with pytest.raises(ArithmeticOverflow):
            pallet.transfer("alice", "bob", 1)
        assert pallet.balances() == before

    def test_conservation(self, pallet):
        pallet.set_balance("bob", 20)
        total = pallet.total_issuance()
        pallet.transfer("alice", "bob", 33)
        pallet.transfer("bob", "charlie", 50)
        with pytest.raises(InsufficientFunds):
            pallet.transfer("charlie", "alice", 51)
        assert pallet.total_issuance() == total

    def test_transfer_emits_event(self, pallet):
        pallet.transfer("alice", "bob", 30)
        events = pallet.take_events()
        assert len(events) == 1
        assert isinstance(events[0], Transferred)
        assert (events[0].sender, events[0].receiver, events[0].amount) == ("alice", "bob", U128(30))
        assert pallet.take_events() == []

    def test_failed_transfer_emits_nothing(self, pallet):
        with pytest.raises(InsufficientFunds):
            pallet.transfer("alice", "bob", 500)
        assert pallet.take_events() == []


class TestBalancesDispatch:
    """Routing of balances calls."""

    def test_dispatch_transfer(self, pallet):
        pallet.dispatch("alice", balances.Call.Transfer(to="bob", amount=10))
        assert pallet.get_balance("bob") == U128(10)

    def test_unknown_call(self, pallet):
        with pytest.raises(UnknownCall):
            pallet.dispatch("alice", object())

    def test_bad_amount_is_invalid_argument(self, pallet):
        with pytest.raises(InvalidArgument):
            pallet.dispatch("alice", balances.Call.Transfer(to="bob", amount=-1))
        with pytest.raises(InvalidArgument):
            pallet.dispatch("alice", balances.Call.Transfer(to="bob", amount="ten"))

    def test_bad_receiver_is_invalid_argument(self, pallet):
        with pytest.raises(InvalidArgument) as exc:
            pallet.dispatch("alice", balances.Call.Transfer(to=7, amount=1))
        assert isinstance(exc.value, DispatchError)
        assert pallet.get_balance("alice") == U128(100)

"""
Claims module tests: exclusive content ownership.

Run with: pytest tests/test_claims.py -v
"""

import pytest

from chainlet import claims
from chainlet.errors import AlreadyClaimed, InvalidArgument, NoSuchClaim, NotOwner, UnknownCall
from chainlet.events import ClaimCreated, ClaimRevoked
from chainlet.runtime import RuntimeConfig


@pytest.fixture
def pallet():
    return claims.Pallet(RuntimeConfig)


class TestCreateClaim:

    def test_unclaimed_content_has_no_owner(self, pallet):
        assert pallet.get_claim("doc") is None

    def test_create(self, pallet):
        pallet.create_claim("alice", "doc")
        assert pallet.get_claim("doc") == "alice"

    def test_second_claim_rejected_even_by_owner(self, pallet):
        pallet.create_claim("alice", "doc")
        with pytest.raises(AlreadyClaimed) as exc:
            pallet.create_claim("alice", "doc")
        assert exc.value.owner == "alice"
        with pytest.raises(AlreadyClaimed):
            pallet.create_claim("bob", "doc")
        assert pallet.get_claim("doc") == "alice"

    def test_account_may_hold_many_claims(self, pallet):
        pallet.create_claim("alice", "a")
        pallet.create_claim("alice", "b")
        assert pallet.claims() == {"a": "alice", "b": "alice"}

    def test_emits_event(self, pallet):
        pallet.create_claim("alice", "doc")
        (event,) = pallet.take_events()
        assert isinstance(event, ClaimCreated)
        assert (event.owner, event.content) == ("alice", "doc")


class TestRevokeClaim:

    def test_owner_revokes(self, pallet):
        pallet.create_claim("alice", "doc")
        pallet.take_events()
        pallet.revoke_claim("alice", "doc")
        assert pallet.get_claim("doc") is None
        (event,) = pallet.take_events()
        assert isinstance(event, ClaimRevoked)

    def test_revoke_unclaimed(self, pallet):
        with pytest.raises(NoSuchClaim):
            pallet.revoke_claim("alice", "doc")

    def test_non_owner_cannot_revoke(self, pallet):
        pallet.create_claim("alice", "doc")
        with pytest.raises(NotOwner) as exc:
            pallet.revoke_claim("bob", "doc")
        assert exc.value.owner == "alice"
        assert exc.value.caller == "bob"
        assert pallet.get_claim("doc") == "alice"

    def test_content_can_be_reclaimed_after_revoke(self, pallet):
        pallet.create_claim("alice", "doc")
        pallet.revoke_claim("alice", "doc")
        pallet.create_claim("bob", "doc")
        assert pallet.get_claim("doc") == "bob"


class TestClaimsDispatch:

    def test_dispatch_variants(self, pallet):
        pallet.dispatch("alice", claims.Call.CreateClaim(content="doc"))
        assert pallet.get_claim("doc") == "alice"
        pallet.dispatch("alice", claims.Call.RevokeClaim(content="doc"))
        assert pallet.get_claim("doc") is None

    def test_unknown_call(self, pallet):
        with pytest.raises(UnknownCall):
            pallet.dispatch("alice", "create_claim")

    def test_wrong_content_type(self, pallet):
        with pytest.raises(InvalidArgument):
            pallet.dispatch("alice", claims.Call.CreateClaim(content=b"bytes"))
        assert pallet.claims() == {}

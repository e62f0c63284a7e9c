"""chainlet Runtime.

Composes the system, balances and claims modules into one state machine,
routes calls to the module that owns them, and executes blocks.

Architecture:
    ┌─────────────────────────────────────────────────────────────┐
    │                         RUNTIME                              │
    │                                                              │
    │   execute_block(block)                                       │
    │     1. system.increment_block_number()       (always)        │
    │     2. header.block_number == block_number() (else reject)   │
    │        size limit, caller types              (else reject)   │
    │     3. for each extrinsic, in order:                         │
    │          system.increment_nonce(caller)                      │
    │          dispatch(caller, call) ── error? record, continue   │
    │     4. BlockReceipt                                          │
    │                                                              │
    │   dispatch(caller, RuntimeCall)                              │
    │     ├─ RuntimeCall.Balances ──► balances.Pallet.dispatch     │
    │     └─ RuntimeCall.Claims   ──► claims.Pallet.dispatch       │
    └─────────────────────────────────────────────────────────────┘

Failure policy has two tiers. Block-level problems (wrong block number,
oversized block, malformed extrinsic) raise an ExecutionError and nothing
in the block runs, not even nonce increments. A module error on one extrinsic is recorded on the
receipt and logged; the nonce it consumed stays consumed and the next
extrinsic runs as if nothing happened.

Usage:
    from chainlet.runtime import Runtime, RuntimeCall, build_block, signed
    from chainlet import balances

    runtime = Runtime()
    runtime.balances.set_balance("alice", 100)
    receipt = runtime.execute_block(build_block(1, [
        signed("alice", RuntimeCall.Balances(balances.Call.Transfer(to="bob", amount=10))),
    ]))

A Runtime instance must not execute blocks concurrently; a second entry
while one is running raises ConcurrentExecution.
"""

from __future__ import annotations

import dataclasses
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Tuple, Type

from chainlet import balances, claims, system
from chainlet.config import ChainletConfig, get_config
from chainlet.core import canonical_digest
from chainlet.errors import (
    BlockNumberMismatch,
    BlockTooLarge,
    ConcurrentExecution,
    DispatchError,
    ExecutionError,
    InvalidExtrinsic,
    UnknownCall,
)
from chainlet.events import (
    BlockExecuted,
    BlockRejected,
    Event,
    EventBus,
    ExtrinsicFailed,
    ExtrinsicSucceeded,
)
from chainlet.observability import RuntimeLayer, get_logger, get_tracer
from chainlet.primitives import U32, U128
from chainlet.support import (
    BalancesConfig,
    Block,
    ClaimsConfig,
    Dispatch,
    Extrinsic,
    Header,
    require_config,
)

log = get_logger("runtime", RuntimeLayer.RUNTIME)


# =============================================================================
# CONFIGURATION
# =============================================================================

class RuntimeConfig(BalancesConfig, ClaimsConfig):
    """Concrete types every module of this runtime is instantiated with."""

    AccountId = str
    BlockNumber = U32
    Nonce = U32
    Balance = U128
    Content = str


# =============================================================================
# CALLS
# =============================================================================

class RuntimeCall:
    """
    Closed union of every call this runtime can dispatch.

    One variant per module with calls. Adding a module means adding a
    variant here and a branch in ``Runtime._route``.
    """

    @dataclass(frozen=True)
    class Balances:
        call: Any

        module: ClassVar[str] = "balances"

        def __post_init__(self) -> None:
            if not isinstance(self.call, balances.Call.VARIANTS):
                raise TypeError(f"not a balances call: {self.call!r}")

    @dataclass(frozen=True)
    class Claims:
        call: Any

        module: ClassVar[str] = "claims"

        def __post_init__(self) -> None:
            if not isinstance(self.call, claims.Call.VARIANTS):
                raise TypeError(f"not a claims call: {self.call!r}")

    VARIANTS = (Balances, Claims)

    @staticmethod
    def name_of(call: Any) -> str:
        """Dotted ``module.function`` name for receipts and logs."""
        if isinstance(call, RuntimeCall.VARIANTS):
            return f"{call.module}.{call.call.name}"
        return type(call).__name__


def transfer(to: Any, amount: Any) -> RuntimeCall.Balances:
    return RuntimeCall.Balances(balances.Call.Transfer(to=to, amount=amount))


def create_claim(content: Any) -> RuntimeCall.Claims:
    return RuntimeCall.Claims(claims.Call.CreateClaim(content=content))


def revoke_claim(content: Any) -> RuntimeCall.Claims:
    return RuntimeCall.Claims(claims.Call.RevokeClaim(content=content))


def signed(caller: Any, call: Any) -> Extrinsic:
    return Extrinsic(caller=caller, call=call)


def build_block(block_number: int, extrinsics: Iterable[Extrinsic] = ()) -> Block:
    return Block(header=Header(block_number=block_number), extrinsics=tuple(extrinsics))


# =============================================================================
# RECEIPTS
# =============================================================================

@dataclass(frozen=True)
class ExtrinsicOutcome:
    """What happened to one extrinsic in an accepted block."""
    index: int
    caller: Any
    call: str
    success: bool
    error_kind: Optional[str] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "index": self.index,
            "caller": str(self.caller),
            "call": self.call,
            "success": self.success,
        }
        if not self.success:
            d["error"] = {"kind": self.error_kind, "message": self.error_message}
        return d


@dataclass(frozen=True)
class BlockReceipt:
    """Result of an accepted block."""
    block_number: int
    outcomes: Tuple[ExtrinsicOutcome, ...]
    state_root: str
    events: Tuple[Event, ...] = field(default_factory=tuple, compare=False)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    def failures(self) -> List[ExtrinsicOutcome]:
        return [o for o in self.outcomes if not o.success]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "block_number": self.block_number,
            "extrinsics": [o.to_dict() for o in self.outcomes],
            "succeeded": self.succeeded,
            "failed": self.failed,
            "state_root": self.state_root,
        }


# =============================================================================
# RUNTIME
# =============================================================================

class Runtime(Dispatch):
    """
    The composed ledger state machine.

    ``config`` binds the module types (defaults to ``RuntimeConfig``);
    ``settings`` carries process configuration (defaults to the current global
    ``ChainletConfig``); ``event_bus`` receives every event as it is
    recorded.
    """

    def __init__(
        self,
        config: Type[RuntimeConfig] = RuntimeConfig,
        *,
        settings: Optional[ChainletConfig] = None,
        event_bus: Optional[EventBus] = None,
    ):
        require_config(config, BalancesConfig)
        require_config(config, ClaimsConfig)
        self.config = config
        self._settings = settings
        self.event_bus = event_bus

        self.system = system.Pallet(config)
        self.balances = balances.Pallet(config)
        self.claims = claims.Pallet(config)

        self.events: List[Event] = []
        self._lock = threading.Lock()

    @classmethod
    def from_genesis(cls, genesis: Any, **kwargs: Any) -> "Runtime":
        """Build a runtime and seed balances from a ``Genesis``."""
        runtime = cls(**kwargs)
        for who, amount in genesis.balances.items():
            runtime.balances.set_balance(who, amount)
        return runtime

    @property
    def settings(self) -> ChainletConfig:
        return self._settings if self._settings is not None else get_config()

    # Read accessors ------------------------------------------------------

    def block_number(self):
        return self.system.block_number()

    def nonce(self, who):
        return self.system.nonce(who)

    def get_balance(self, who):
        return self.balances.get_balance(who)

    def get_claim(self, content):
        return self.claims.get_claim(content)

    def snapshot(self) -> Dict[str, Any]:
        """Full state as plain data, keys stringified."""
        return {
            "block_number": int(self.system.block_number()),
            "balances": {str(k): int(v) for k, v in self.balances.balances().items()},
            "nonces": {str(k): int(v) for k, v in self.system.nonces().items()},
            "claims": {str(k): str(v) for k, v in self.claims.claims().items()},
        }

    def state_root(self) -> str:
        """Digest of the full state; identical histories give identical roots."""
        return canonical_digest(self.snapshot())

    # Dispatch ------------------------------------------------------------

    @contextmanager
    def _exclusive(self):
        if not self._lock.acquire(blocking=False):
            raise ConcurrentExecution("runtime is already executing")
        try:
            yield
        finally:
            self._lock.release()

    def dispatch(self, caller, call) -> None:
        """
        Apply one pre-authenticated call outside of block framing.

        Module errors propagate unchanged. No nonce is consumed.
        """
        with self._exclusive():
            self._route(caller, call)
            self._collect_module_events()

    def _route(self, caller, call) -> None:
        if isinstance(call, RuntimeCall.Balances):
            self.balances.dispatch(caller, call.call)
        elif isinstance(call, RuntimeCall.Claims):
            self.claims.dispatch(caller, call.call)
        else:
            raise UnknownCall(f"runtime cannot dispatch {type(call).__name__}")

    # Events --------------------------------------------------------------

    def _record(self, event: Event) -> None:
        if not self.settings.execution.emit_events.get():
            return
        self.events.append(event)
        if self.event_bus is not None:
            self.event_bus.publish(event)

    def _collect_module_events(
        self,
        block_number: Optional[int] = None,
        extrinsic_index: Optional[int] = None,
    ) -> None:
        for pallet in (self.balances, self.claims):
            for event in pallet.take_events():
                self._record(dataclasses.replace(
                    event,
                    block_number=block_number,
                    extrinsic_index=extrinsic_index,
                ))

    def _discard_module_events(self) -> None:
        for pallet in (self.balances, self.claims):
            pallet.take_events()

    # Block execution -----------------------------------------------------

    def execute_block(self, block: Block) -> BlockReceipt:
        """
        Execute ``block`` against the current state.

        Raises ExecutionError subclasses for block-level rejection; per-
        extrinsic failures are reported in the returned receipt.
        """
        with self._exclusive():
            # An invalid setting raises here, before the counter moves.
            limit = self.settings.execution.max_extrinsics_per_block.get()
            self.events = []
            with get_tracer().span(
                "execute_block",
                RuntimeLayer.RUNTIME,
                block_number=block.block_number,
                extrinsics=len(block.extrinsics),
            ) as span:
                try:
                    self._start_block(block, limit)
                except ExecutionError as e:
                    span.set_status("rejected", str(e))
                    log.error(
                        f"Block rejected: {e}",
                        error_code=e.kind,
                        block_number=block.block_number,
                        current_block_number=int(self.system.block_number()),
                    )
                    self._record(BlockRejected(
                        block_number=block.block_number,
                        error_kind=e.kind,
                        reason=str(e),
                    ))
                    raise

                number = int(self.system.block_number())
                outcomes = [
                    self._apply_extrinsic(number, index, extrinsic)
                    for index, extrinsic in enumerate(block.extrinsics)
                ]

                receipt = BlockReceipt(
                    block_number=number,
                    outcomes=tuple(outcomes),
                    state_root=self.state_root(),
                )
                span.set_attribute("failed", receipt.failed)
                self._record(BlockExecuted(
                    block_number=number,
                    extrinsic_count=len(outcomes),
                    failed_count=receipt.failed,
                    state_root=receipt.state_root,
                ))
                log.operation(
                    "execute_block",
                    duration_ms=round(span.duration_ms, 3),
                    block_number=number,
                    extrinsics=len(outcomes),
                    failed=receipt.failed,
                    state_root=receipt.state_root,
                )
                return dataclasses.replace(receipt, events=tuple(self.events))

    def _start_block(self, block: Block, limit: int) -> None:
        self.system.increment_block_number()

        expected = int(self.system.block_number())
        if block.block_number != expected:
            raise BlockNumberMismatch(expected=expected, got=block.block_number)

        if limit and len(block.extrinsics) > limit:
            raise BlockTooLarge(len(block.extrinsics), limit)

        # Nothing may run until every extrinsic has an attributable caller.
        for index, extrinsic in enumerate(block.extrinsics):
            if not isinstance(extrinsic, Extrinsic):
                raise InvalidExtrinsic(index, f"expected Extrinsic, got {type(extrinsic).__name__}")
            if not isinstance(extrinsic.caller, self.config.AccountId):
                raise InvalidExtrinsic(
                    index,
                    f"caller must be {self.config.AccountId.__name__}, "
                    f"got {type(extrinsic.caller).__name__}",
                )

    def _apply_extrinsic(self, number: int, index: int, extrinsic: Extrinsic) -> ExtrinsicOutcome:
        caller, call = extrinsic.caller, extrinsic.call
        call_name = RuntimeCall.name_of(call)
        try:
            self.system.increment_nonce(caller)
            self._route(caller, call)
        except DispatchError as e:
            self._discard_module_events()
            log.warning(
                f"Extrinsic {index} in block {number} failed: {e}",
                error_code=e.kind,
                block_number=number,
                extrinsic_index=index,
                caller=str(caller),
                call=call_name,
            )
            self._record(ExtrinsicFailed(
                block_number=number,
                extrinsic_index=index,
                caller=caller,
                call=call_name,
                error_kind=e.kind,
                error_message=str(e),
            ))
            return ExtrinsicOutcome(
                index=index,
                caller=caller,
                call=call_name,
                success=False,
                error_kind=e.kind,
                error_message=str(e),
            )

        self._collect_module_events(number, index)
        self._record(ExtrinsicSucceeded(
            block_number=number,
            extrinsic_index=index,
            caller=caller,
            call=call_name,
        ))
        return ExtrinsicOutcome(index=index, caller=caller, call=call_name, success=True)

    def __repr__(self) -> str:
        return (
            f"Runtime(block_number={self.system.block_number()!r}, "
            f"{self.balances!r}, {self.claims!r})"
        )


__all__ = [
    "RuntimeConfig",
    "RuntimeCall",
    "ExtrinsicOutcome",
    "BlockReceipt",
    "Runtime",
    "transfer",
    "create_claim",
    "revoke_claim",
    "signed",
    "build_block",
]

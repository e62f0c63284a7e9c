"""
chainlet: a minimal deterministic ledger runtime

A block executor over three modules (system bookkeeping, account balances
and content claims), composed once against a set of concrete types and
driven by caller-attributed calls packed into numbered blocks.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                              RUNTIME                                     │
    │                                                                          │
    │  EXECUTION                                                               │
    │    runtime.py     Call routing, block executor, receipts, state root     │
    │                                                                          │
    │  MODULES                                                                 │
    │    system.py      Block number, per-account nonces                       │
    │    balances.py    Balances and checked transfers                         │
    │    claims.py      Content → owner registry                               │
    │                                                                          │
    │  FOUNDATIONS                                                             │
    │    support.py     Config capabilities, Dispatch, block structure         │
    │    primitives.py  Fixed-width unsigned integers with checked arithmetic  │
    │    errors.py      DispatchError / ExecutionError hierarchy               │
    │    events.py      Runtime events and the in-memory event bus             │
    │                                                                          │
    │  TOOLING                                                                 │
    │    genesis.py     Schema-validated genesis and block files               │
    │    config.py      YAML + environment configuration                       │
    │    observability.py  Structured logging and tracing                      │
    │    cli.py         `chainlet run | demo | config`                         │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Core Concepts
─────────────

    Extrinsic: one call attributed to a caller. The caller is taken as
    already authenticated; there are no signatures here.

    Block: a header carrying the intended block number and an ordered list
    of extrinsics. A block is accepted only if its number is exactly one
    more than the last block number.

    Failure isolation: a module error fails only its own extrinsic. Nonces
    are consumed either way, and the block commits with the error recorded
    on its receipt. Block-level errors reject the block before any
    extrinsic runs.
"""

__version__ = "0.1.0"

# Lazy imports to avoid circular dependencies
def __getattr__(name):
    """Lazy import chainlet exports on first access."""

    # Runtime exports
    if name in ("Runtime", "RuntimeConfig", "RuntimeCall", "BlockReceipt",
                "ExtrinsicOutcome", "transfer", "create_claim", "revoke_claim",
                "signed", "build_block"):
        from chainlet import runtime
        return getattr(runtime, name)

    # Block structure exports
    if name in ("Block", "Header", "Extrinsic"):
        from chainlet import support
        return getattr(support, name)

    # Numeric exports
    if name in ("U32", "U64", "U128"):
        from chainlet import primitives
        return getattr(primitives, name)

    # Genesis exports
    if name in ("Genesis", "load_genesis", "load_blocks"):
        from chainlet import genesis
        return getattr(genesis, name)

    raise AttributeError(f"module 'chainlet' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Runtime
    "Runtime",
    "RuntimeConfig",
    "RuntimeCall",
    "BlockReceipt",
    "ExtrinsicOutcome",
    "transfer",
    "create_claim",
    "revoke_claim",
    "signed",
    "build_block",
    # Block structure
    "Block",
    "Header",
    "Extrinsic",
    # Numbers
    "U32",
    "U64",
    "U128",
    # Genesis
    "Genesis",
    "load_genesis",
    "load_blocks",
]

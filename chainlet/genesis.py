"""
Genesis and block files.

Reads the two input documents the CLI works from, validates them against
the bundled JSON schemas and turns them into runtime values:

    genesis.yaml                    blocks.yaml
    ────────────                    ───────────
    balances:                       blocks:
      alice: 100                      - block_number: 1
      bob: 0                            extrinsics:
                                          - caller: alice
                                            call:
                                              module: balances
                                              function: transfer
                                              args: {to: bob, amount: 30}

Both files may be YAML or JSON. Any schema violation raises GenesisError
with every message collected, so a bad file is reported in one pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple, Union

import yaml

from chainlet import balances, claims
from chainlet.core import load_document
from chainlet.errors import GenesisError
from chainlet.observability import RuntimeLayer, get_logger
from chainlet.runtime import RuntimeCall
from chainlet.schema import validate_against_schema
from chainlet.support import Block, Extrinsic, Header

log = get_logger("genesis", RuntimeLayer.GENESIS)


@dataclass(frozen=True)
class Genesis:
    """Initial chain state: balances seeded before block 1."""
    balances: Dict[str, int] = field(default_factory=dict)

    @property
    def total_issuance(self) -> int:
        return sum(self.balances.values())

    def to_dict(self) -> Dict[str, Any]:
        return {"balances": dict(self.balances)}


# Call builders keyed by (module, function); args are already schema-checked.
_CALL_BUILDERS: Dict[Tuple[str, str], Callable[[Dict[str, Any]], Any]] = {
    ("balances", "transfer"): lambda args: RuntimeCall.Balances(
        balances.Call.Transfer(to=args["to"], amount=args["amount"])
    ),
    ("claims", "create_claim"): lambda args: RuntimeCall.Claims(
        claims.Call.CreateClaim(content=args["content"])
    ),
    ("claims", "revoke_claim"): lambda args: RuntimeCall.Claims(
        claims.Call.RevokeClaim(content=args["content"])
    ),
}


def parse_call(data: Dict[str, Any]) -> Any:
    """Build a RuntimeCall from ``{module, function, args}``.

    Raises KeyError for a (module, function) pair the runtime does not know.
    """
    key = (data["module"], data["function"])
    try:
        builder = _CALL_BUILDERS[key]
    except KeyError:
        raise KeyError(f"unknown call {key[0]}.{key[1]}") from None
    return builder(data.get("args") or {})


def parse_extrinsic(data: Dict[str, Any]) -> Extrinsic:
    return Extrinsic(caller=data["caller"], call=parse_call(data["call"]))


def parse_block(data: Dict[str, Any]) -> Block:
    return Block(
        header=Header(block_number=data["block_number"]),
        extrinsics=tuple(parse_extrinsic(x) for x in data.get("extrinsics", [])),
    )


def _read(path: Path, source: str) -> Any:
    if not path.is_file():
        raise GenesisError(source, [f"file not found: {path}"])
    try:
        return load_document(path)
    except (ValueError, yaml.YAMLError) as e:
        raise GenesisError(source, [f"cannot parse {path}: {e}"]) from e


def _check(data: Any, schema: str, source: str) -> None:
    errors = validate_against_schema(data, schema)
    if errors:
        log.error(
            f"{source} failed validation with {len(errors)} error(s)",
            error_code="GenesisError",
            source=source,
        )
        raise GenesisError(source, errors)


def genesis_from_dict(data: Any, source: str = "genesis") -> Genesis:
    _check(data, "genesis", source)
    errors = [
        f"$.balances: {account!r} -> {amount!r} is not a string account with an integer amount"
        for account, amount in data["balances"].items()
        if not isinstance(account, str) or isinstance(amount, bool) or not isinstance(amount, int)
    ]
    if errors:
        raise GenesisError(source, errors)
    return Genesis(balances=dict(data["balances"]))


def blocks_from_dict(data: Any, source: str = "blocks") -> List[Block]:
    _check(data, "blocks", source)
    return [parse_block(b) for b in data["blocks"]]


def load_genesis(path: Union[str, Path]) -> Genesis:
    """Load and validate a genesis file."""
    path = Path(path)
    genesis = genesis_from_dict(_read(path, str(path)), str(path))
    log.info(
        f"Loaded genesis with {len(genesis.balances)} account(s)",
        operation="load_genesis",
        path=str(path),
        total_issuance=genesis.total_issuance,
    )
    return genesis


def load_blocks(path: Union[str, Path]) -> List[Block]:
    """Load and validate a block sequence file."""
    path = Path(path)
    blocks = blocks_from_dict(_read(path, str(path)), str(path))
    log.info(f"Loaded {len(blocks)} block(s)", operation="load_blocks", path=str(path))
    return blocks


__all__ = [
    "Genesis",
    "parse_call",
    "parse_extrinsic",
    "parse_block",
    "genesis_from_dict",
    "blocks_from_dict",
    "load_genesis",
    "load_blocks",
]

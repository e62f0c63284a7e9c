#!/usr/bin/env python3
"""
chainlet CLI

Command-line interface for replaying blocks against a fresh ledger.

Usage:
    chainlet [--format json|yaml] [--config FILE] <command> [subcommand] [options]

Commands:
    run         Execute a block file on top of a genesis file
    demo        Run the built-in alice/bob/charlie scenario
    config      Configuration management

Exit codes:
    0   success (individual extrinsics may still have failed; see receipts)
    1   usage, configuration or input file error
    2   a block was rejected as a whole
"""

from __future__ import annotations

import argparse
import json
import sys
from enum import Enum
from typing import Any, Dict, List, Optional

import yaml

from chainlet import __version__
from chainlet.config import ConfigError, get_config, get_config_manager
from chainlet.errors import ExecutionError, GenesisError
from chainlet.genesis import Genesis, blocks_from_dict, load_blocks, load_genesis
from chainlet.observability import (
    RuntimeLayer,
    configure_logging,
    generate_correlation_id,
    get_logger,
    get_tracer,
    set_correlation_id,
)
from chainlet.runtime import Runtime

log = get_logger("cli", RuntimeLayer.CLI)


class OutputFormat(Enum):
    """Output format options."""
    JSON = "json"
    YAML = "yaml"


class CLIError(Exception):
    """CLI error with exit code."""
    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def format_output(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> str:
    """Format data for output."""
    if fmt == OutputFormat.YAML:
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    return json.dumps(data, indent=2, default=str)


# Genesis and blocks for ``chainlet demo``. Block 2 carries two extrinsics
# that fail on purpose; the block itself still commits.
DEMO_GENESIS = Genesis(balances={"alice": 100})

DEMO_BLOCKS: Dict[str, Any] = {
    "blocks": [
        {
            "block_number": 1,
            "extrinsics": [
                {"caller": "alice", "call": {"module": "balances", "function": "transfer",
                                             "args": {"to": "bob", "amount": 30}}},
                {"caller": "alice", "call": {"module": "balances", "function": "transfer",
                                             "args": {"to": "charlie", "amount": 20}}},
            ],
        },
        {
            "block_number": 2,
            "extrinsics": [
                {"caller": "bob", "call": {"module": "claims", "function": "create_claim",
                                           "args": {"content": "Hello, world!"}}},
                {"caller": "charlie", "call": {"module": "claims", "function": "revoke_claim",
                                               "args": {"content": "Hello, world!"}}},
                {"caller": "charlie", "call": {"module": "balances", "function": "transfer",
                                               "args": {"to": "alice", "amount": 500}}},
            ],
        },
    ],
}


class ChainletCLI:
    """Main CLI application."""

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="chainlet",
            description="Deterministic ledger runtime",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument(
            "--version", "-V",
            action="version",
            version=f"chainlet {__version__}",
        )
        self.parser.add_argument(
            "--format", "-f",
            choices=[f.value for f in OutputFormat],
            default="json",
            help="Output format (default: json)",
        )
        self.parser.add_argument(
            "--config", "-c",
            help="Extra YAML config file, applied after the defaults",
        )
        self.parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress error messages on stderr",
        )

        self.subparsers = self.parser.add_subparsers(dest="command", help="Commands")
        self._register_commands()

    def _register_commands(self) -> None:
        """Register all command groups."""
        self._register_run_command()
        self._register_demo_command()
        self._register_config_commands()

    def _register_run_command(self) -> None:
        run = self.subparsers.add_parser("run", help="Execute blocks on top of a genesis state")
        run.add_argument("--genesis", "-g", required=True, help="Genesis file (YAML or JSON)")
        run.add_argument("--blocks", "-b", required=True, help="Block sequence file (YAML or JSON)")
        run.add_argument(
            "--events",
            action="store_true",
            help="Include recorded events in each receipt",
        )

    def _register_demo_command(self) -> None:
        demo = self.subparsers.add_parser("demo", help="Run the built-in demo scenario")
        demo.add_argument(
            "--events",
            action="store_true",
            help="Include recorded events in each receipt",
        )

    def _register_config_commands(self) -> None:
        """Register config subcommands."""
        config = self.subparsers.add_parser("config", help="Configuration management")
        config_sub = config.add_subparsers(dest="subcommand")

        # config get
        get = config_sub.add_parser("get", help="Get configuration value")
        get.add_argument("path", help="Config path (e.g., execution.max_extrinsics_per_block)")

        # config show
        config_sub.add_parser("show", help="Show all configuration")

        # config validate
        config_sub.add_parser("validate", help="Validate configuration")

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 0

        try:
            self._load_config(parsed)
            fmt = OutputFormat(parsed.format)
            result = self._dispatch(parsed)

            if result is not None:
                print(format_output(result, fmt))

            return 0

        except CLIError as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return e.exit_code

        except (ConfigError, GenesisError, yaml.YAMLError) as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return 1

    def _load_config(self, args: argparse.Namespace) -> None:
        mgr = get_config_manager()
        mgr.load_defaults()
        if args.config:
            mgr.load_from_file(args.config)

        errors = mgr.validate()
        if errors:
            raise ConfigError("invalid configuration: " + "; ".join(errors))

        obs = get_config().observability
        try:
            configure_logging(level=obs.log_level.get(), fmt=obs.log_format.get())
        except ValueError as e:
            raise ConfigError(f"invalid observability settings: {e}") from e
        set_correlation_id(generate_correlation_id())

    def _dispatch(self, args: argparse.Namespace) -> Any:
        """Dispatch command to handler."""
        cmd = args.command
        subcmd = getattr(args, "subcommand", None)

        handler_name = f"_handle_{cmd}_{subcmd}" if subcmd else f"_handle_{cmd}"
        handler = getattr(self, handler_name, None)

        if handler is None:
            raise CLIError(f"Unknown command: {cmd} {subcmd or ''}")

        return handler(args)

    # Execution handlers
    def _handle_run(self, args: argparse.Namespace) -> Any:
        genesis = load_genesis(args.genesis)
        blocks = load_blocks(args.blocks)
        return self._execute(genesis, blocks, include_events=args.events)

    def _handle_demo(self, args: argparse.Namespace) -> Any:
        blocks = blocks_from_dict(DEMO_BLOCKS, "demo")
        return self._execute(DEMO_GENESIS, blocks, include_events=args.events)

    def _execute(self, genesis: Genesis, blocks: List[Any], include_events: bool) -> Dict[str, Any]:
        runtime = Runtime.from_genesis(genesis)
        receipts = []
        with get_tracer().span("replay", RuntimeLayer.CLI, blocks=len(blocks)) as span:
            for block in blocks:
                try:
                    receipt = runtime.execute_block(block)
                except ExecutionError as e:
                    raise CLIError(f"block {block.block_number} rejected: {e}", exit_code=2) from e

                entry = receipt.to_dict()
                if include_events:
                    entry["events"] = [event.to_dict() for event in receipt.events]
                receipts.append(entry)

            log.operation(
                "replay",
                duration_ms=round(span.duration_ms, 3),
                blocks=len(receipts),
                state_root=runtime.state_root(),
            )
        return {
            "receipts": receipts,
            "state": runtime.snapshot(),
            "state_root": runtime.state_root(),
        }

    # Config handlers
    def _handle_config_get(self, args: argparse.Namespace) -> Any:
        mgr = get_config_manager()
        value = mgr.get(args.path)
        if hasattr(value, "__dataclass_fields__"):
            raise CLIError(f"{args.path} is a section; use 'config show'")
        return {"path": args.path, "value": value}

    def _handle_config_show(self, args: argparse.Namespace) -> Any:
        return get_config_manager().config.to_dict()

    def _handle_config_validate(self, args: argparse.Namespace) -> Any:
        errors = get_config_manager().validate()
        if errors:
            raise CLIError("invalid configuration: " + "; ".join(errors))
        return {"valid": True, "errors": []}


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    cli = ChainletCLI()
    return cli.run(argv)


if __name__ == "__main__":
    sys.exit(main())

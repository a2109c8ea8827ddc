#!/usr/bin/env python3
"""
Arbiter CLI

Command-line interface for the scrypt step arbiter.

Usage:
    arbiter <command> [subcommand] [options]

Commands:
    verify      Verify one step claim read from a JSON file
    trace       Build the honest trace for an input; print the output or one claim
    admit       Run the session admission check
    config      Configuration management

Exit codes:
    0   success / claim valid / session admitted
    1   usage, schema or configuration error
    2   claim invalid / session rejected

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import argparse
import json
import sys
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Tuple

import yaml

from arbiter import __version__
from arbiter.config import ConfigError, get_config, get_config_manager
from arbiter.hardening import ValidationErrors, Validators
from arbiter.observability import ArbiterLayer, get_logger

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_REJECTED = 2


class OutputFormat(Enum):
    """Output format options."""
    JSON = "json"
    YAML = "yaml"
    TEXT = "text"


class CLIError(Exception):
    """CLI error with exit code."""
    def __init__(self, message: str, exit_code: int = EXIT_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


def format_output(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> str:
    """Format data for output."""
    if fmt == OutputFormat.JSON:
        return json.dumps(data, indent=2, default=str)
    elif fmt == OutputFormat.YAML:
        return yaml.dump(data, default_flow_style=False, sort_keys=False)
    elif isinstance(data, dict):
        return "\n".join(f"{k}: {v}" for k, v in data.items())
    return str(data)


class ArbiterCLI:
    """Main CLI application."""

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="arbiter",
            description="Scrypt step arbiter CLI",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument(
            "--version", "-V",
            action="version",
            version=f"arbiter {__version__}",
        )
        self.parser.add_argument(
            "--format", "-f",
            choices=[f.value for f in OutputFormat],
            default=None,
            help="Output format (default: cli.output_format)",
        )
        self.parser.add_argument(
            "--config", "-c",
            help="YAML configuration file",
        )
        self.parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress error messages",
        )

        self.subparsers = self.parser.add_subparsers(dest="command", help="Commands")
        self._register_commands()

    def _register_commands(self) -> None:
        """Register all command groups."""
        verify = self.subparsers.add_parser("verify", help="Verify a step claim")
        verify.add_argument("--claim", required=True, help="Claim JSON file")

        trace = self.subparsers.add_parser("trace", help="Build the honest trace for an input")
        trace.add_argument("--input", "-i", required=True, help="Input bytes as hex")
        trace.add_argument("--step", "-s", type=int, help="Print the claim for this step")
        trace.add_argument("--out", "-o", help="Write the claim to this JSON file")

        admit = self.subparsers.add_parser("admit", help="Session admission check")
        admit.add_argument("--session", help="Session JSON file")
        admit.add_argument("--output", help="Claimed output as hex")
        admit.add_argument("--high-step", type=int, help="Declared total step count")
        admit.add_argument("--id", default="", help="Session ID")

        self._register_config_commands()

    def _register_config_commands(self) -> None:
        """Register config subcommands."""
        config = self.subparsers.add_parser("config", help="Configuration management")
        config_sub = config.add_subparsers(dest="subcommand")

        get = config_sub.add_parser("get", help="Get configuration value")
        get.add_argument("path", help="Config path (e.g., observability.log_level)")

        config_sub.add_parser("show", help="Show all configuration")
        config_sub.add_parser("validate", help="Validate configuration")
        config_sub.add_parser("schema", help="Export configuration schema")

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return EXIT_OK

        try:
            if parsed.config:
                get_config_manager().load_from_file(parsed.config)
            else:
                get_config_manager().load_defaults()
            fmt = OutputFormat(parsed.format or get_config().cli.output_format.get())
            result, exit_code = self._dispatch(parsed)

            if result is not None:
                print(format_output(result, fmt))

            return exit_code

        except CLIError as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return e.exit_code

        except (ConfigError, ValidationErrors, OSError, json.JSONDecodeError) as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return EXIT_ERROR

    def _dispatch(self, args: argparse.Namespace) -> Tuple[Any, int]:
        """Dispatch command to handler."""
        cmd = args.command
        subcmd = getattr(args, "subcommand", None)

        handler_name = f"_handle_{cmd}_{subcmd}" if subcmd else f"_handle_{cmd}"
        handler = getattr(self, handler_name, None)

        if handler is None:
            raise CLIError(f"Unknown command: {cmd} {subcmd or ''}")

        get_logger("cli", ArbiterLayer.CLI).debug("Dispatching command", operation=handler_name)
        return handler(args)

    # Verification handlers
    def _handle_verify(self, args: argparse.Namespace) -> Tuple[Any, int]:
        from arbiter.schema import load_claim
        from arbiter.verifier import check_step

        claim = load_claim(args.claim)
        verdict = check_step(claim.step, claim.pre_state, claim.post_state, claim.proof)
        return verdict.to_dict(), EXIT_OK if verdict.valid else EXIT_REJECTED

    def _handle_trace(self, args: argparse.Namespace) -> Tuple[Any, int]:
        from arbiter.scrypt import HIGH_STEP
        from arbiter.trace import build_trace

        if args.out and args.step is None:
            raise CLIError("--out requires --step")

        data = Validators.validate_hex(args.input, "input")
        data.raise_if_invalid()
        trace = build_trace(data.sanitized_value)

        if args.step is None:
            return {
                "input": trace.input.hex(),
                "output": trace.output.hex(),
                "steps": HIGH_STEP + 1,
            }, EXIT_OK

        step = Validators.validate_step(args.step, HIGH_STEP)
        if not step.is_valid:
            raise CLIError(step.reason)

        claim = trace.claim(step.sanitized_value).to_dict()
        if args.out:
            Path(args.out).write_text(json.dumps(claim, indent=2) + "\n", encoding="utf-8")
            return {"step": claim["step"], "written": args.out}, EXIT_OK
        return claim, EXIT_OK

    def _handle_admit(self, args: argparse.Namespace) -> Tuple[Any, int]:
        from arbiter.schema import load_session
        from arbiter.verifier import Session, check_session, is_initially_valid

        if args.session:
            session = load_session(args.session)
        else:
            if args.output is None or args.high_step is None:
                raise CLIError("admit needs --session or both --output and --high-step")
            output = Validators.validate_hex(args.output, "output")
            output.raise_if_invalid()
            session = Session(output=output.sanitized_value, high_step=args.high_step, session_id=args.id)

        admitted = is_initially_valid(session)
        return {
            "session_id": session.session_id,
            "admitted": admitted,
            "reason": check_session(session).reason,
        }, EXIT_OK if admitted else EXIT_REJECTED

    # Config handlers
    def _handle_config_get(self, args: argparse.Namespace) -> Tuple[Any, int]:
        mgr = get_config_manager()
        return {"path": args.path, "value": mgr.get(args.path)}, EXIT_OK

    def _handle_config_show(self, args: argparse.Namespace) -> Tuple[Any, int]:
        return get_config_manager().config.to_dict(), EXIT_OK

    def _handle_config_validate(self, args: argparse.Namespace) -> Tuple[Any, int]:
        errors = get_config_manager().validate()
        return {"valid": not errors, "errors": errors}, EXIT_OK if not errors else EXIT_ERROR

    def _handle_config_schema(self, args: argparse.Namespace) -> Tuple[Any, int]:
        return get_config_manager().export_schema(), EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    return ArbiterCLI().run(argv)


if __name__ == "__main__":
    sys.exit(main())

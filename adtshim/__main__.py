"""CLI entry point for the compatibility layer.

Usage:
    python -m adtshim list
    python -m adtshim list --json
    python -m adtshim translate Execute-MSI -p Path={GUID} -p IgnoreExitCodes=1641,3010
    python -m adtshim translate Remove-File --item a.txt --item b.txt
    python -m adtshim --catalog ./my_catalog.yaml check

``translate`` is a dry run: the call is rewritten and printed as JSON, and
nothing reaches the new API.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

from adtshim.lib.api import RecordingApi
from adtshim.lib.catalog import RuleCatalog, load_catalog
from adtshim.lib.errors import ShimError, TranslationImpossible
from adtshim.lib.facade import CompatibilityFacade
from adtshim.lib.observability import setup_logging
from adtshim.lib.settings import ShimSettings

logger = logging.getLogger("adtshim")


def parse_parameter(text: str) -> Tuple[str, Any]:
    """Parse ``NAME=VALUE`` into a legacy parameter.

    A bare ``NAME`` is a switch and means ``True``. Values are read as YAML
    scalars or lists (``false``, ``3010``, ``[a.txt, b.txt]``); anything
    else, including ``{GUID}`` product codes, stays a string.
    """
    name, sep, raw = text.partition("=")
    name = name.strip().lstrip("-")
    if not name:
        raise argparse.ArgumentTypeError(f"Invalid parameter '{text}', expected NAME=VALUE")
    if not sep:
        return name, True
    return name, _parse_value(raw)


def _parse_value(raw: str) -> Any:
    try:
        value = yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw
    if isinstance(value, dict):
        return raw
    if value is None:
        # "null" and "~" are explicit; an empty value stays an empty string
        return None if raw.strip() else raw
    return value


def _load_settings(args: argparse.Namespace) -> ShimSettings:
    settings = ShimSettings.from_env(env_file=args.env_file)
    return settings.with_overrides(
        catalog_path=Path(args.catalog) if args.catalog else None,
        suppress_deprecation_notices=True if args.suppress_notices else None,
        json_logs=True if args.json_logs else None,
        log_file=Path(args.log_file) if args.log_file else None,
    )


def _catalog(settings: ShimSettings, *, verify: bool = True) -> RuleCatalog:
    return load_catalog(settings.catalog_path, verify=verify)


def list_command(settings: ShimSettings, as_json: bool = False) -> int:
    """Print the legacy operations and their replacements."""
    catalog = _catalog(settings)

    if as_json:
        payload = [
            {
                "legacy": catalog[name].legacy,
                "replacement": catalog[name].replacement,
                "returns": catalog[name].returns.value,
                "pipeline": catalog[name].pipeline,
            }
            for name in catalog.names()
        ]
        print(json.dumps(payload, indent=2))
        return 0

    names = catalog.names()
    width = max([len(name) for name in names] + [16])

    print(f"  {'Legacy operation':<{width}}  Replacement")
    print(f"  {'-' * width}  {'-' * 40}")
    for name in names:
        rule = catalog[name]
        marker = " (pipeline)" if rule.pipeline else ""
        print(f"  {name:<{width}}  {rule.replacement}{marker}")
    print()
    print(f"{len(names)} legacy operations")
    return 0


def translate_command(
    settings: ShimSettings,
    operation: str,
    parameters: Sequence[Tuple[str, Any]],
    items: Optional[List[Any]] = None,
) -> int:
    """Rewrite one legacy call and print what would reach the new API."""
    facade = CompatibilityFacade(RecordingApi(), catalog=_catalog(settings), settings=settings)
    params: Dict[str, Any] = {}
    for name, value in parameters:
        if name in params:
            raise TranslationImpossible(
                f"Parameter '{name}' was given more than once",
                operation=operation,
                parameters=[name],
            )
        params[name] = value

    if items:
        call = facade.translate_pipeline(operation, [_parse_value(i) for i in items], params)
    else:
        call = facade.translate(operation, params)

    print(json.dumps(call.to_dict(), indent=2, default=str))
    return 0


def check_command(settings: ShimSettings) -> int:
    """Verify every rule forwards only parameters its replacement accepts."""
    catalog = _catalog(settings, verify=False)
    problems = catalog.verify()

    print(f"Catalog: {catalog.source}")
    print(f"Rules:   {len(catalog)}")
    print()

    if not problems:
        print("RESULT: PASSED - every rule maps onto its replacement")
        return 0

    for name in sorted(problems):
        print(f"  {name}:")
        for issue in problems[name]:
            print(f"    - {issue}")
    print()
    print(f"RESULT: FAILED - {len(problems)} inconsistent rule(s)")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="adt-shim",
        description="Legacy deployment toolkit operations on top of the v4 API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # List legacy operations and their replacements
    adt-shim list

    # Show how a legacy call is rewritten
    adt-shim translate Show-InstallationPrompt -p Message=Hello -p TopMost=false

    # Piped input is batched into one call
    adt-shim translate Remove-File --item a.txt --item b.txt -p ContinueOnError=true

    # Verify a custom catalog
    adt-shim --catalog ./catalog.yaml check
        """,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs in JSON format (for log aggregation systems)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to a file in addition to stderr",
    )
    parser.add_argument(
        "--env-file",
        help="Load settings from this .env file",
    )
    parser.add_argument(
        "--catalog",
        help="Translation rule catalog (default: bundled legacy_v3.yaml)",
    )
    parser.add_argument(
        "--suppress-notices",
        action="store_true",
        help="Do not emit deprecation notices",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    list_parser = commands.add_parser("list", help="List legacy operations")
    list_parser.add_argument("--json", action="store_true", help="Print as JSON")

    translate_parser = commands.add_parser(
        "translate", help="Rewrite a legacy call without running it"
    )
    translate_parser.add_argument("operation", help="Legacy operation name, e.g. Execute-MSI")
    translate_parser.add_argument(
        "-p",
        "--param",
        dest="parameters",
        action="append",
        type=parse_parameter,
        default=[],
        metavar="NAME=VALUE",
        help="Legacy parameter; repeat for more. A bare NAME is a switch",
    )
    translate_parser.add_argument(
        "--item",
        dest="items",
        action="append",
        default=[],
        metavar="VALUE",
        help="Pipeline input item; repeat for more",
    )

    commands.add_parser("check", help="Verify the translation rule catalog")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _load_settings(args)
        setup_logging(
            verbose=args.verbose,
            json_format=settings.json_logs,
            log_file=settings.log_file,
            level=settings.log_level,
        )

        if args.command == "list":
            return list_command(settings, as_json=args.json)
        if args.command == "translate":
            return translate_command(settings, args.operation, args.parameters, args.items)
        return check_command(settings)

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130

    except ShimError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

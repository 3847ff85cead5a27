"""CLI entrypoint: dispatch a command name to a method on the SDK.

    esmc <command> [options...] [-v|--verbose]

Anything printed or logged while the target is imported, constructed and
invoked is swallowed unless verbose mode is on (``--verbose``/``-v`` or
``ESMC_VERBOSE=true``). The method's result is printed as indented JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import inspect
import json
import os
import sys
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

from dotenv import load_dotenv
from pydantic import BaseModel

from .config.settings import get_settings
from .core.exceptions import CommandError, ConfigurationError
from .utils.logging import configure_logging, quiet_output

HELP_COMMANDS = {"help", "--help", "-h"}

USAGE = """ESMC SDK command line

Usage: esmc <command> [options...]

Account:
  status                 Tier, license and device summary
  tier                   Resolve the current tier
  features               Features enabled for the current tier
  access <TIER>          Check whether the current tier grants TIER
  login                  Log in through the browser
  logout                 Remove stored credentials and the license file
  sync-license           Write the license file from stored credentials
  validate               Validate the license file
  license                Show the license file
  verify-package [dir]   Verify package signature and checksums
  hardware               Show the hardware fingerprint
  brain                  Locate the brain module for the current tier

Colonels and intelligence:
  deploy [wave=N] [COLONEL ...]
  analyze [text]
  synthesize

Data:
  echo [args...]  process [items...]  transform <json>
  hash <text>     normalize <path>    join <parts...>   resolve [parts...]

Flags:
  -v, --verbose          Show output produced while the command runs
                         (same as ESMC_VERBOSE=true)
  -s, --silent           Accepted for compatibility; output is quiet by default
  -h, --help             Show this message
"""


@dataclass
class CliArgs:
    command: Optional[str]
    options: List[str] = field(default_factory=list)
    verbose: bool = False
    help: bool = False


FLAG_TOKENS = {"-v", "--verbose", "-s", "--silent", "-h", "--help"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="esmc", add_help=False, allow_abbrev=False)
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("-s", "--silent", action="store_true")
    parser.add_argument("-h", "--help", action="store_true", dest="help")
    return parser


def parse_args(argv: Sequence[str]) -> CliArgs:
    """Strip the known flags; the first remaining argument is the command.

    Only exact flag tokens are parsed. Anything else, including ``-vx`` or
    ``--verbose=1``, is passed through to the command as an option.
    """
    argv = list(argv)
    flags = build_parser().parse_args([token for token in argv if token in FLAG_TOKENS])
    rest = [token for token in argv if token not in FLAG_TOKENS]
    command = rest[0] if rest else None
    return CliArgs(
        command=command,
        options=rest[1:],
        verbose=flags.verbose,
        help=flags.help or command in HELP_COMMANDS,
    )


def is_verbose(args: CliArgs, environ: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if environ is None else environ
    return args.verbose or env.get("ESMC_VERBOSE", "").strip().lower() == "true"


def load_target(spec: str) -> Any:
    """Import ``package.module:ClassName`` and instantiate it."""
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise ConfigurationError(f"Invalid CLI target {spec!r} (expected 'module:ClassName')")
    module = importlib.import_module(module_name)
    return getattr(module, attr)()


async def _resolve(awaitable: Any) -> Any:
    return await awaitable


def dispatch(target: Any, command: str, options: List[str]) -> Any:
    name = command.replace("-", "_")
    if name.startswith("_"):
        raise CommandError(f"Unknown command: {command}")
    method = getattr(target, name)
    result = method(options)
    if inspect.isawaitable(result):
        result = asyncio.run(_resolve(result))
    return result


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    if isinstance(value, Path):
        return str(value)
    return str(value)


def render(result: Any) -> str:
    return json.dumps(result, indent=2, default=_json_default, ensure_ascii=False)


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = parse_args(sys.argv[1:] if argv is None else argv)

    if args.help:
        print(USAGE)
        return 0
    if args.command is None:
        print(USAGE)
        return 1

    settings = get_settings()
    verbose = is_verbose(args)
    configure_logging(level="INFO" if verbose else settings.log_level, json_logs=settings.log_json)

    try:
        with quiet_output(not verbose):
            target = load_target(settings.cli_target)
            output = render(dispatch(target, args.command, args.options))
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(output)
    return 0


def run() -> None:
    """Console-script entrypoint."""
    try:
        code = main()
    except (SystemExit, KeyboardInterrupt):
        raise
    except BaseException as exc:
        print(f"Fatal: {exc}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    run()

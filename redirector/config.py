"""Runtime configuration.

Settings are built once at process entry, from command-line flags whose
defaults can be overridden through environment variables, and then passed
explicitly to the app factory and the lifecycle manager.
"""

import argparse
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_HOST = "0.0.0.0:8080"
DEFAULT_REDIRECT = "https://google.com"
DEFAULT_GRACEFUL_TIMEOUT = 5.0

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a duration such as ``5s``, ``1m30s`` or ``250ms`` into seconds."""
    value = text.strip()
    if value == "0":
        return 0.0
    if not value:
        raise ValueError("empty duration")
    if value[0] == "-":
        raise ValueError(f"negative duration: {text!r}")
    if value[0] == "+":
        value = value[1:]

    total = 0.0
    pos = 0
    while pos < len(value):
        match = _DURATION_PART.match(value, pos)
        if match is None:
            raise ValueError(f"invalid duration: {text!r}")
        number, unit = match.groups()
        total += float(number) * _DURATION_UNITS[unit]
        pos = match.end()
    if pos == 0:
        raise ValueError(f"invalid duration: {text!r}")
    return total


def split_host_port(address: str) -> Tuple[str, int]:
    """Split ``host:port``; an empty host means every interface."""
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address: {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    if not port.isdigit() or int(port) > 65535:
        raise ValueError(f"invalid port in address: {address!r}")
    return host or "0.0.0.0", int(port)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_defaults() -> Dict[str, Any]:
    # Raw strings: argparse validates them only when no flag overrides them.
    return {
        "host": os.getenv("REDIRECTOR_HOST", DEFAULT_HOST),
        "redirect": os.getenv("REDIRECTOR_REDIRECT", DEFAULT_REDIRECT),
        "debug": _env_flag("REDIRECTOR_DEBUG", False),
        "graceful_timeout": os.getenv("REDIRECTOR_GRACEFUL_TIMEOUT", "5s"),
    }


@dataclass(frozen=True)
class Settings:
    host: str = DEFAULT_HOST
    redirect: str = DEFAULT_REDIRECT
    debug: bool = False
    graceful_timeout: float = DEFAULT_GRACEFUL_TIMEOUT

    @property
    def bind(self) -> Tuple[str, int]:
        return split_host_port(self.host)

    @classmethod
    def from_env(cls) -> "Settings":
        """Settings from ``REDIRECTOR_*`` variables; raises ``ValueError``."""
        defaults = _env_defaults()
        split_host_port(defaults["host"])
        defaults["graceful_timeout"] = parse_duration(defaults["graceful_timeout"])
        return cls(**defaults)


def _address(value: str) -> str:
    try:
        split_host_port(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))
    return value


def _duration(value: str) -> float:
    try:
        return parse_duration(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
    defaults = _env_defaults()
    parser = argparse.ArgumentParser(
        prog="redirector",
        description="Redirect every HTTP request to a single target URL.",
    )
    parser.add_argument(
        "-host",
        "--host",
        dest="host",
        type=_address,
        default=defaults["host"],
        help="IP and Port to bind to",
    )
    parser.add_argument(
        "-redirect",
        "--redirect",
        dest="redirect",
        default=defaults["redirect"],
        help="redirect target",
    )
    parser.add_argument(
        "-debug",
        "--debug",
        dest="debug",
        action="store_true",
        default=defaults["debug"],
        help="Enable DEBUG mode",
    )
    parser.add_argument(
        "-graceful-timeout",
        "--graceful-timeout",
        dest="graceful_timeout",
        type=_duration,
        default=defaults["graceful_timeout"],
        help=(
            "the duration for which the server gracefully waits for existing "
            "connections to finish - e.g. 15s or 1m"
        ),
    )
    return parser


def parse_args(argv: Optional[List[str]] = None) -> Settings:
    args = build_parser().parse_args(argv)
    return Settings(
        host=args.host,
        redirect=args.redirect,
        debug=args.debug,
        graceful_timeout=args.graceful_timeout,
    )

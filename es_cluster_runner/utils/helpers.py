import argparse
import json
import logging
import typing as tp

LOGGER = logging.getLogger(__name__)

_TRUE_STRS = frozenset({"true", "yes", "on", "1"})
_FALSE_STRS = frozenset({"false", "no", "off", "0"})


def get_print_func(
    *, use_stdout: bool, logger: logging.Logger = LOGGER
) -> tp.Callable[[str], None]:
    """Return function for printing user-facing messages.

    The messages go either to standard output or to the log (INFO level).
    """
    if use_stdout:
        return print
    return logger.info


def pretty_json(content: tp.Any) -> str:
    """Return content formatted as indented JSON."""
    return json.dumps(content, indent=2, sort_keys=True, default=str)


def check_bool_arg(value: str) -> bool:
    """Check that the value passed as argparse parameter is a valid boolean."""
    lowered = value.strip().lower()
    if lowered in _TRUE_STRS:
        return True
    if lowered in _FALSE_STRS:
        return False
    msg = f"check_bool_arg: invalid boolean value '{value}'"
    raise argparse.ArgumentTypeError(msg)


def check_positive_int_arg(value: str) -> int:
    """Check that the value passed as argparse parameter is a positive integer."""
    try:
        num = int(value)
    except ValueError:
        num = 0
    if num < 1:
        msg = f"check_positive_int_arg: '{value}' is not a positive integer"
        raise argparse.ArgumentTypeError(msg)
    return num


def check_port_arg(value: str) -> int:
    """Check that the value passed as argparse parameter is a usable TCP port number."""
    try:
        port = int(value)
    except ValueError:
        port = -1
    if not 0 < port < 65535:
        msg = f"check_port_arg: '{value}' is not a valid port number"
        raise argparse.ArgumentTypeError(msg)
    return port

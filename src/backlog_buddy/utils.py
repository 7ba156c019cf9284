"""
Utility functions for the backlog buddy tool.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from subprocess import CompletedProcess

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

LOG_FILE = "backlog_buddy.log"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

_CONSOLE_LEVELS: dict[int, int] = {0: logging.WARNING, 1: logging.INFO}


class PassError(Exception):
    """Base class for pass-related errors."""


class InvalidPassPathError(PassError):
    """Raised when the pass path format is invalid."""


class PassphraseRequiredError(PassError):
    """Raised when a GPG passphrase is required for the pass utility."""


def setup_logging(verbosity: int = 0) -> None:
    """Configure logging: WARNING on the console (INFO with -v, DEBUG with -vv), everything to the log file."""
    console_level = _CONSOLE_LEVELS.get(verbosity, logging.DEBUG)
    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(LOG_FILE, mode="a")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    # Client libraries are chatty at DEBUG
    for name in ("urllib3", "github", "gitlab"):
        logging.getLogger(name).setLevel(max(console_level, logging.INFO))


def _validate_pass_path(pass_path: str) -> None:
    """Validate the pass path format."""
    if not re.fullmatch(r"(?:[A-Za-z0-9_-]+)(?:/[A-Za-z0-9_-]+)*", pass_path):
        msg = f"Invalid pass path: {pass_path}"
        raise ValueError(msg)


def _pass_failure_message(pass_path: str, error: subprocess.CalledProcessError, *, suffix: str = "") -> str:
    return (
        f"Failed to get value from pass at '{pass_path}'{suffix}.\n"
        f"Output: {error.stdout.strip()}\n"
        f"Error: {error.stderr.strip()}\n"
        f"Return code: {error.returncode}"
    )


def get_pass_value(pass_path: str) -> str:
    """Get value from pass utility at specified path."""
    _validate_pass_path(pass_path)

    try:
        result: CompletedProcess[str] = subprocess.run(  # noqa: S603
            ["pass", pass_path], capture_output=True, text=True, check=True  # noqa: S607
        )
    except FileNotFoundError as e:
        msg = "The 'pass' utility is not installed"
        raise PassError(msg) from e
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.lower()
        if e.returncode == 1 and "not in the password store" in stderr:
            msg = f"Pass path '{pass_path}' not found or invalid."
            raise InvalidPassPathError(msg) from e
        if e.returncode == 2 and "gpg" in stderr and "public key decryption failed" in stderr:
            # The GPG key needs a passphrase; this fails in non-interactive sessions (e.g. pytest)
            return _get_pass_value_with_passphrase(pass_path)
        raise PassError(_pass_failure_message(pass_path, e)) from e

    return result.stdout.strip()


def _get_pass_value_with_passphrase(pass_path: str) -> str:
    try:
        passphrase = input("Enter passphrase for GPG key used by pass: ")
    except EOFError as e:
        msg = "Passphrase input was interrupted. Please run the command in an interactive session."
        raise PassphraseRequiredError(msg) from e

    env = os.environ.copy() | {"PASSWORD_STORE_GPG_OPTS": "--pinentry-mode=loopback --passphrase-fd 0"}
    try:
        result = subprocess.run(  # noqa: S603
            ["pass", pass_path], input=passphrase, capture_output=True, text=True, check=True, env=env  # noqa: S607
        )
    except subprocess.CalledProcessError as e:
        raise PassphraseRequiredError(_pass_failure_message(pass_path, e, suffix=" with passphrase")) from e
    return result.stdout.strip()


def get_token(
    *,
    pass_path: str | None,
    env_var: str,
    default_pass_path: str,
    service: str,
) -> str | None:
    """Get a token from an explicit pass path, then the environment variable, then the default pass path."""
    # Try pass path first
    if pass_path:
        return get_pass_value(pass_path)

    # Try environment variable
    token: str | None = os.environ.get(env_var)
    if token:
        return token

    # Try default pass path
    try:
        return get_pass_value(default_pass_path)
    except PassError:
        logger.warning(f"No {service} token specified nor found")
        return None

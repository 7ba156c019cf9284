from __future__ import annotations

import logging
from typing import Final

import requests

from . import utils
from .exceptions import ConfigurationError

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_TOKEN_ENV_VAR: Final[str] = "AZURE_DEVOPS_TOKEN"  # noqa: S105
_DEFAULT_TOKEN_PASS_PATH: Final[str] = "azure-devops/cli/token"  # noqa: S105
BASE_URL: Final[str] = "https://dev.azure.com"


def get_token(pass_path: str | None = None) -> str | None:
    """Get an Azure DevOps personal access token from pass path, env var AZURE_DEVOPS_TOKEN, or default pass location."""
    return utils.get_token(
        pass_path=pass_path,
        env_var=_TOKEN_ENV_VAR,
        default_pass_path=_DEFAULT_TOKEN_PASS_PATH,
        service="Azure DevOps",
    )


def parse_target(target: str) -> tuple[str, str]:
    """Split an 'organization/project' target."""
    organization, _, project = target.strip().partition("/")
    if not organization or not project or "/" in project:
        msg = f"Invalid Azure DevOps target '{target}'. Expected format: 'organization/project'"
        raise ConfigurationError(msg)
    return organization, project


def get_session(token: str | None) -> requests.Session:
    """Get a requests session authenticated with a personal access token."""
    if not token:
        msg = "An Azure DevOps personal access token is required"
        raise ConfigurationError(msg)

    session = requests.Session()
    # PATs use basic auth with an empty user name
    session.auth = ("", token)
    session.headers.update({"Accept": "application/json"})
    return session

from __future__ import annotations

import logging
from typing import Final

from github import Auth, Github, GithubException, UnknownObjectException
from github.Repository import Repository

from . import utils
from .exceptions import ConfigurationError

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_TOKEN_ENV_VAR: Final[str] = "GITHUB_TOKEN"  # noqa: S105
_DEFAULT_TOKEN_PASS_PATH: Final[str] = "github/cli/token"  # noqa: S105


def get_token(pass_path: str | None = None) -> str | None:
    """Get GitHub token from pass path, env var GITHUB_TOKEN, or default pass location."""
    return utils.get_token(
        pass_path=pass_path,
        env_var=_TOKEN_ENV_VAR,
        default_pass_path=_DEFAULT_TOKEN_PASS_PATH,
        service="GitHub",
    )


def get_client(token: str | None = None) -> Github:
    """Get a GitHub client using the token."""
    if token is None:
        return Github()
    return Github(auth=Auth.Token(token))


def get_repo(client: Github, repo_path: str) -> Repository:
    """Get a repository by its owner/name path."""
    owner, _, name = repo_path.strip().partition("/")
    if not owner or not name or "/" in name:
        msg = f"Invalid GitHub repository path '{repo_path}'. Expected format: 'owner/repository'"
        raise ConfigurationError(msg)

    try:
        return client.get_repo(repo_path)
    except UnknownObjectException as e:
        msg = f"GitHub repository {repo_path} not found"
        raise ConfigurationError(msg) from e
    except GithubException as e:
        msg = f"Error accessing GitHub repository {repo_path}: {e}"
        raise ConfigurationError(msg) from e

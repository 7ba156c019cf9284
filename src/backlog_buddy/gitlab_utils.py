from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from gitlab import Gitlab
from gitlab.exceptions import GitlabError, GitlabGetError

from . import utils
from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from gitlab.v4.objects import Project

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_TOKEN_ENV_VAR: Final[str] = "GITLAB_TOKEN"  # noqa: S105
_DEFAULT_TOKEN_PASS_PATH: Final[str] = "gitlab/cli/token"  # noqa: S105
DEFAULT_URL: Final[str] = "https://gitlab.com"


def get_token(pass_path: str | None = None) -> str | None:
    """Get GitLab token from pass path, env var GITLAB_TOKEN, or default pass location."""
    return utils.get_token(
        pass_path=pass_path,
        env_var=_TOKEN_ENV_VAR,
        default_pass_path=_DEFAULT_TOKEN_PASS_PATH,
        service="GitLab",
    )


def get_client(url: str = DEFAULT_URL, token: str | None = None) -> Gitlab:
    """Get a GitLab client using the token."""
    return Gitlab(url=url, private_token=token)


def get_project(client: Gitlab, project_path: str) -> Project:
    """Get a project by its namespace/project path."""
    if not project_path.strip() or "/" not in project_path:
        msg = f"Invalid GitLab project path '{project_path}'. Expected format: 'namespace/project'"
        raise ConfigurationError(msg)

    try:
        return client.projects.get(project_path)
    except GitlabGetError as e:
        msg = f"GitLab project {project_path} not found"
        raise ConfigurationError(msg) from e
    except GitlabError as e:
        msg = f"Error accessing GitLab project {project_path}: {e}"
        raise ConfigurationError(msg) from e

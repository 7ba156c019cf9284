"""Azure DevOps Boards as a work item repository, over the REST API.

Reads use a WIQL query for the ids followed by batched work item reads.
Writes are JSON-patch documents. Release train parents are "Release Train"
work items tagged ``auto-generated`` and linked to their members with
``System.LinkTypes.Related`` relations.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final

import requests

from .azure_devops_utils import BASE_URL
from .exceptions import FetchError, RepositoryError
from .models import RELEASE_TRAIN, AggregateParent, WorkItem
from .release_train import normalize_key

if TYPE_CHECKING:
    from collections.abc import Sequence

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

API_VERSION: Final[str] = "7.1"
RELATED_LINK: Final[str] = "System.LinkTypes.Related"
AUTO_GENERATED_TAG: Final[str] = "auto-generated"
DEFAULT_SWAG_FIELD: Final[str] = "Custom.SWAG"
DEFAULT_STATUS_NOTES_FIELD: Final[str] = "Custom.StatusNotes"

# Maximum number of ids accepted by the workitemsbatch endpoint
BATCH_SIZE: Final[int] = 200

_JSON_PATCH: Final[dict[str, str]] = {"Content-Type": "application/json-patch+json"}


def _split_tags(raw: str | None) -> list[str]:
    return [tag.strip() for tag in (raw or "").split(";") if tag.strip()]


def _parse_swag(raw: Any) -> float | None:
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring malformed SWAG field value '{raw}'")
        return None


def _quote(value: str) -> str:
    """Quote a WIQL string literal."""
    return "'" + value.replace("'", "''") + "'"


class AzureDevOpsRepository:
    """WorkItemRepository backed by the work items of one Azure DevOps project."""

    session: requests.Session
    organization: str
    project: str
    area_path: str | None
    swag_field: str
    status_notes_field: str
    base_url: str

    def __init__(
        self,
        session: requests.Session,
        organization: str,
        project: str,
        *,
        area_path: str | None = None,
        swag_field: str = DEFAULT_SWAG_FIELD,
        status_notes_field: str = DEFAULT_STATUS_NOTES_FIELD,
        base_url: str = BASE_URL,
    ) -> None:
        self.session = session
        self.organization = organization
        self.project = project
        self.area_path = area_path
        self.swag_field = swag_field
        self.status_notes_field = status_notes_field
        self.base_url = base_url.rstrip("/")

    @property
    def _api_url(self) -> str:
        return f"{self.base_url}/{self.organization}/{self.project}/_apis/wit"

    def _work_item_url(self, item_id: int) -> str:
        return f"{self._api_url}/workItems/{item_id}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        params = kwargs.pop("params", {}) | {"api-version": API_VERSION}
        response = self.session.request(method, f"{self._api_url}/{path}", params=params, timeout=60, **kwargs)
        response.raise_for_status()
        return response.json()

    def _query_ids(self, conditions: list[str]) -> list[int]:
        clauses = ["[System.TeamProject] = @project", *conditions]
        if self.area_path:
            clauses.append(f"[System.AreaPath] UNDER {_quote(self.area_path)}")
        query = (
            "SELECT [System.Id] FROM WorkItems WHERE "
            + " AND ".join(clauses)
            + " ORDER BY [Microsoft.VSTS.Common.StackRank] ASC, [System.Id] ASC"
        )
        data = self._request("POST", "wiql", json={"query": query})
        return [entry["id"] for entry in data.get("workItems", [])]

    def _get_items(self, ids: Sequence[int], *, expand_relations: bool = False) -> list[dict[str, Any]]:
        """Read work items in batches, keeping the order of ids."""
        by_id: dict[int, dict[str, Any]] = {}
        for start in range(0, len(ids), BATCH_SIZE):
            body: dict[str, Any] = {"ids": list(ids[start : start + BATCH_SIZE])}
            if expand_relations:
                body["$expand"] = "relations"
            data = self._request("POST", "workitemsbatch", json=body)
            by_id.update({raw["id"]: raw for raw in data.get("value", [])})
        return [by_id[item_id] for item_id in ids if item_id in by_id]

    def _to_work_item(self, raw: dict[str, Any]) -> WorkItem:
        fields: dict[str, Any] = raw.get("fields", {})
        return WorkItem(
            id=raw["id"],
            title=fields.get("System.Title", ""),
            work_item_type=fields.get("System.WorkItemType", ""),
            state=fields.get("System.State", ""),
            swag=_parse_swag(fields.get(self.swag_field)),
            status_notes=fields.get(self.status_notes_field) or "",
            url=f"{self.base_url}/{self.organization}/{self.project}/_workitems/edit/{raw['id']}",
            iteration_path=fields.get("System.IterationPath"),
            tags=_split_tags(fields.get("System.Tags")),
        )

    def _related_ids(self, raw: dict[str, Any]) -> list[int]:
        ids: list[int] = []
        for relation in raw.get("relations") or []:
            if relation.get("rel") != RELATED_LINK:
                continue
            tail = relation.get("url", "").rstrip("/").rsplit("/", 1)[-1]
            if tail.isdigit():
                ids.append(int(tail))
        return ids

    def _link_operations(self, member_ids: Sequence[int]) -> list[dict[str, Any]]:
        return [
            {
                "op": "add",
                "path": "/relations/-",
                "value": {
                    "rel": RELATED_LINK,
                    "url": self._work_item_url(item_id),
                    "attributes": {"comment": "Auto-generated relation"},
                },
            }
            for item_id in member_ids
        ]

    def fetch_work_items(self) -> list[WorkItem]:
        try:
            ids = self._query_ids([])
            items = [self._to_work_item(raw) for raw in self._get_items(ids)]
        except requests.RequestException as e:
            msg = f"Failed to read work items of {self.organization}/{self.project}: {e}"
            raise FetchError(msg) from e

        logger.debug(f"Fetched {len(items)} work items from {self.organization}/{self.project}")
        return items

    def find_aggregate_parent(self, group_key: str) -> AggregateParent | None:
        try:
            ids = self._query_ids(
                [
                    f"[System.WorkItemType] = {_quote(RELEASE_TRAIN)}",
                    f"[System.Tags] CONTAINS {_quote(AUTO_GENERATED_TAG)}",
                ]
            )
            for raw in self._get_items(ids, expand_relations=True):
                item = self._to_work_item(raw)
                if normalize_key(item.title) == group_key:
                    return AggregateParent(
                        id=item.id,
                        title=item.title,
                        linked_item_ids=self._related_ids(raw),
                        swag=item.swag,
                        status_notes=item.status_notes,
                    )
        except requests.RequestException as e:
            msg = f"Failed to look up release train parent '{group_key}': {e}"
            raise RepositoryError(msg) from e
        return None

    def create_aggregate_parent(self, title: str, member_ids: Sequence[int]) -> int:
        document: list[dict[str, Any]] = [
            {"op": "add", "path": "/fields/System.Title", "value": title},
            {"op": "add", "path": "/fields/System.Tags", "value": AUTO_GENERATED_TAG},
        ]
        if self.area_path:
            document.append({"op": "add", "path": "/fields/System.AreaPath", "value": self.area_path})
        document.extend(self._link_operations(member_ids))

        try:
            data = self._request("POST", f"workitems/${RELEASE_TRAIN}", json=document, headers=_JSON_PATCH)
        except requests.RequestException as e:
            msg = f"Failed to create release train parent '{title}': {e}"
            raise RepositoryError(msg) from e

        logger.debug(f"Created release train parent #{data['id']} '{title}' with {len(member_ids)} relation(s)")
        return data["id"]

    def add_links(self, parent_id: int, member_ids: Sequence[int]) -> None:
        try:
            self._request(
                "PATCH", f"workitems/{parent_id}", json=self._link_operations(member_ids), headers=_JSON_PATCH
            )
        except requests.RequestException as e:
            msg = f"Failed to link work items to release train parent #{parent_id}: {e}"
            raise RepositoryError(msg) from e

    def update_estimate(self, item_id: int, value: float, status_notes: str) -> None:
        document = [
            {"op": "add", "path": f"/fields/{self.swag_field}", "value": value},
            {"op": "add", "path": f"/fields/{self.status_notes_field}", "value": status_notes},
        ]
        try:
            self._request("PATCH", f"workitems/{item_id}", json=document, headers=_JSON_PATCH)
        except requests.RequestException as e:
            msg = f"Failed to update SWAG of work item #{item_id}: {e}"
            raise RepositoryError(msg) from e

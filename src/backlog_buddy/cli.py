"""
Command-line interface for the backlog buddy tool.
"""

from __future__ import annotations

import argparse
import dataclasses
import enum
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from . import azure_devops_utils as adu
from . import github_utils as ghu
from . import gitlab_utils as glu
from .azure_devops_backend import DEFAULT_STATUS_NOTES_FIELD, DEFAULT_SWAG_FIELD, AzureDevOpsRepository
from .exceptions import BuddyError
from .github_backend import GitHubRepository
from .gitlab_backend import GitLabRepository
from .orchestrator import run_hygiene, run_release_trains, run_swag_updates, validate_item
from .summary import failed_checks_by_severity, group_failures_by_check
from .swag import format_value
from .utils import PassError, setup_logging

if TYPE_CHECKING:
    from .models import EstimateValidationResult, ReleaseTrainSummary
    from .orchestrator import HygieneRun, SwagUpdateRun
    from .protocols import WorkItemRepository

logger: logging.Logger = logging.getLogger(__name__)

BACKENDS = ("github", "gitlab", "azure-devops")


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Audit backlog hygiene, reconcile release trains and SWAG estimates"
    )

    _ = parser.add_argument("--backend", "-b", choices=BACKENDS, required=True, help="Work item store to use")
    _ = parser.add_argument(
        "target",
        help="GitHub repository (owner/repo), GitLab project (namespace/project) "
        "or Azure DevOps project (organization/project)",
    )

    _ = parser.add_argument("--json", dest="json_path", type=Path, help="Also write the run's summary to this file")

    _ = parser.add_argument(
        "--github-pass-token", help="Path for GitHub token in pass utility (default: github/cli/token)"
    )
    _ = parser.add_argument(
        "--gitlab-pass-token", help="Path for GitLab token in pass utility (default: gitlab/cli/token)"
    )
    _ = parser.add_argument("--gitlab-url", default=glu.DEFAULT_URL, help="GitLab instance URL")
    _ = parser.add_argument(
        "--ado-pass-token", help="Path for Azure DevOps token in pass utility (default: azure-devops/cli/token)"
    )
    _ = parser.add_argument("--area-path", help="Azure DevOps area path to restrict the backlog to")
    _ = parser.add_argument("--swag-field", default=DEFAULT_SWAG_FIELD, help="Azure DevOps SWAG field reference name")
    _ = parser.add_argument(
        "--status-notes-field", default=DEFAULT_STATUS_NOTES_FIELD, help="Azure DevOps status notes field reference name"
    )

    _ = parser.add_argument(
        "--verbose", "-v", action="count", default=0, help="Increase console verbosity (-v: info, -vv: debug)"
    )

    commands = parser.add_subparsers(dest="command", required=True)
    _ = commands.add_parser("hygiene", help="Run the hygiene checks and print the report")
    _ = commands.add_parser("release-trains", help="Create or update release train parents")
    swag_check = commands.add_parser("swag-check", help="Validate the SWAG of a single work item")
    _ = swag_check.add_argument("item_id", type=int, help="Work item id (issue number)")
    _ = commands.add_parser("swag-updates", help="Roll member SWAG estimates up into release train parents")

    return parser.parse_args(argv)


def build_repository(args: argparse.Namespace) -> WorkItemRepository:
    """Create the repository backend selected on the command line."""
    if args.backend == "github":
        client = ghu.get_client(ghu.get_token(args.github_pass_token))
        return GitHubRepository(ghu.get_repo(client, args.target))

    if args.backend == "gitlab":
        client = glu.get_client(args.gitlab_url, glu.get_token(args.gitlab_pass_token))
        return GitLabRepository(glu.get_project(client, args.target))

    organization, project = adu.parse_target(args.target)
    return AzureDevOpsRepository(
        adu.get_session(adu.get_token(args.ado_pass_token)),
        organization,
        project,
        area_path=args.area_path,
        swag_field=args.swag_field,
        status_notes_field=args.status_notes_field,
    )


def _json_default(value: object) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)


def _write_json(path: Path, payload: dict[str, Any]) -> None:
    path.write_text(json.dumps(payload, indent=2, default=_json_default) + "\n", encoding="utf-8")
    logger.info(f"Wrote report to {path}")


def _hygiene_payload(run: HygieneRun) -> dict[str, Any]:
    summary = run.summary
    return {
        "backlog_read_successfully": run.backlog_read_successfully,
        "total_checks": summary.total_checks,
        "passed_checks": summary.passed_checks,
        "failed_checks": summary.failed_checks,
        "health_score": summary.health_score,
        "critical_issues": summary.critical_issues,
        "error_issues": summary.error_issues,
        "warning_issues": summary.warning_issues,
        "check_results": [dataclasses.asdict(result) for result in summary.check_results],
    }


def _print_hygiene_report(run: HygieneRun) -> None:
    """Print the hygiene report to stdout."""
    if not run.backlog_read_successfully:
        print("\nHygiene checks FAILED: the backlog could not be read")
        return

    summary = run.summary
    print("\n" + "=" * 50)
    print("HYGIENE REPORT")
    print("=" * 50)
    print(f"Health score: {summary.health_score:.1f}%")
    print(f"Checks: Total={summary.total_checks}, Passed={summary.passed_checks}, Failed={summary.failed_checks}")
    print(
        f"Issues: Critical={summary.critical_issues}, Error={summary.error_issues}, Warning={summary.warning_issues}"
    )

    groups = group_failures_by_check(summary)
    if groups:
        print("\nFailures by check:")
        for check_name, results in groups:
            print(f"  {check_name}: {len(results)}")

    failed = failed_checks_by_severity(summary)
    if failed:
        print("\nFailed checks:")
        for result in failed:
            print(f"  [{result.severity.name}] #{result.work_item_id} {result.work_item_title}: {result.check_name}")
            if result.details:
                print(f"      {result.details}")
            if result.recommendation:
                print(f"      -> {result.recommendation}")


def _print_release_train_report(summary: ReleaseTrainSummary) -> None:
    """Print the release train operations to stdout."""
    if not summary.backlog_read_successfully:
        print("\nRelease trains FAILED: the backlog could not be read")
        return

    print("\n" + "=" * 50)
    print("RELEASE TRAINS")
    print("=" * 50)
    print(f"Backlog items processed: {summary.total_backlog_items_processed}")
    if not summary.operations:
        print("No release trains found")
    for operation in summary.operations:
        print(
            f"  {operation.operation.value} #{operation.id} {operation.title}: "
            f"{operation.total_work_items} work item(s), {operation.new_relations_added} new relation(s)"
        )
    for failure in summary.failures:
        print(f"  FAILED {failure.title}: {failure.message}")


def _print_validation_result(item_id: int, result: EstimateValidationResult | None) -> None:
    """Print the SWAG validation of one work item to stdout."""
    if result is None:
        print(f"\nWork item #{item_id} not found")
        return

    def _fmt(value: float | None) -> str:
        return format_value(value) if value is not None else "-"

    print(f"\nSWAG check for work item #{item_id}")
    print(f"  Field: {_fmt(result.field_value)}, Status notes: {_fmt(result.notes_value)}")
    print(f"  {'CONSISTENT' if result.is_consistent else 'INCONSISTENT'} ({result.severity.name})")
    for issue in result.issues:
        print(f"  - {issue}")


def _print_swag_update_report(run: SwagUpdateRun) -> None:
    """Print the SWAG roll-up results to stdout."""
    if not run.backlog_read_successfully:
        print("\nSWAG updates FAILED: the backlog could not be read")
        return

    print("\n" + "=" * 50)
    print("SWAG UPDATES")
    print("=" * 50)
    for rollup in run.rollups:
        current = format_value(rollup.current) if rollup.current is not None else "-"
        status = "updated" if rollup.updated else "up to date"
        print(f"  #{rollup.parent_id} {rollup.title}: {current} -> {format_value(rollup.total)} ({status})")
        if rollup.members_without_estimate:
            missing = ", ".join(f"#{item_id}" for item_id in rollup.members_without_estimate)
            print(f"      without estimate: {missing}")
    for failure in run.failures:
        print(f"  FAILED {failure.title}: {failure.message}")
    print(f"Updated {run.updated_count} of {len(run.rollups)} release train(s)")


def _run_command(args: argparse.Namespace, repository: WorkItemRepository) -> int:
    """Run the selected command, print its report and return the exit code."""
    if args.command == "hygiene":
        hygiene_run = run_hygiene(repository)
        _print_hygiene_report(hygiene_run)
        if args.json_path:
            _write_json(args.json_path, _hygiene_payload(hygiene_run))
        return 0 if hygiene_run.backlog_read_successfully else 1

    if args.command == "release-trains":
        summary = run_release_trains(repository)
        _print_release_train_report(summary)
        if args.json_path:
            _write_json(args.json_path, dataclasses.asdict(summary))
        return 0 if summary.backlog_read_successfully and not summary.failures else 1

    if args.command == "swag-check":
        result = validate_item(repository, args.item_id)
        _print_validation_result(args.item_id, result)
        if args.json_path and result is not None:
            _write_json(args.json_path, dataclasses.asdict(result))
        return 0 if result is not None else 1

    swag_run = run_swag_updates(repository)
    _print_swag_update_report(swag_run)
    if args.json_path:
        _write_json(args.json_path, dataclasses.asdict(swag_run))
    return 0 if swag_run.backlog_read_successfully and not swag_run.failures else 1


def main() -> None:
    """Main entry point."""
    args = parse_arguments()
    setup_logging(verbosity=args.verbose)

    try:
        repository = build_repository(args)
        exit_code = _run_command(args, repository)
    except (BuddyError, PassError, ValueError):
        logger.exception(f"Command '{args.command}' failed")
        sys.exit(1)

    sys.exit(exit_code)

# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from dotenv import load_dotenv

from tenure_reconcile import app
from tenure_reconcile.config import ConfigurationError, configure_logging
from tenure_reconcile.domain.errors import ReconciliationError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from tenure_reconcile.domain.matching import DetectionResult
    from tenure_reconcile.domain.model import Conflict, Package
    from tenure_reconcile.domain.package_workflow import PackageStatusView
    from tenure_reconcile.domain.validation import ValidationSummary

log = logging.getLogger(__name__)

OPERATOR_ENV_VAR = "TENURE_RECONCILE_OPERATOR_ID"


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile offline field-survey packages")
    parser.add_argument(
        "--user",
        type=str,
        default=None,
        help=f"Operator id recorded on every change (defaults to ${OPERATOR_ENV_VAR})",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Run the validation levels on a package")
    validate.add_argument("package_id", type=str)

    detect = subparsers.add_parser("detect", help="Run duplicate detection on a package")
    detect.add_argument("package_id", type=str)

    approve = subparsers.add_parser("approve", help="Approve valid records for commit")
    approve.add_argument("package_id", type=str)
    approve.add_argument(
        "--record",
        dest="record_ids",
        action="append",
        default=None,
        help="Original entity id to approve (repeatable; defaults to every valid record)",
    )

    resolve = subparsers.add_parser("resolve", help="Apply a decision to a conflict")
    resolve.add_argument("conflict_id", type=str)
    resolve.add_argument("action", choices=app.RESOLUTION_ACTIONS)
    resolve.add_argument("--reason", type=str, required=True, help="Reason for the decision")
    resolve.add_argument("--notes", type=str, help="Optional reviewer notes")
    resolve.add_argument(
        "--master-id",
        type=str,
        help="Entity id to keep when merging (defaults to the first entity)",
    )

    commit = subparsers.add_parser("commit", help="Commit a ready package")
    commit.add_argument("package_id", type=str)
    cleanup = commit.add_mutually_exclusive_group()
    cleanup.add_argument(
        "--cleanup-staging",
        dest="cleanup_staging",
        action="store_true",
        default=None,
        help="Delete staging rows after a fully successful commit",
    )
    cleanup.add_argument(
        "--keep-staging",
        dest="cleanup_staging",
        action="store_false",
        help="Keep staging rows regardless of configuration",
    )

    cancel = subparsers.add_parser("cancel", help="Cancel a package")
    cancel.add_argument("package_id", type=str)
    cancel.add_argument("--reason", type=str, required=True)
    cancel.add_argument("--cleanup-staging", action="store_true")

    quarantine = subparsers.add_parser("quarantine", help="Quarantine a suspicious package")
    quarantine.add_argument("package_id", type=str)
    quarantine.add_argument("--reason", type=str, required=True)

    reset = subparsers.add_parser(
        "reset-commit", help="Return a stuck or failed package to ready_to_commit"
    )
    reset.add_argument("package_id", type=str)
    reset.add_argument("--reason", type=str, required=True)

    status = subparsers.add_parser("status", help="Show package status and conflicts")
    status.add_argument("package_id", type=str)

    return parser.parse_args(list(argv))


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _resolve_operator(value: str | None) -> UUID | None:
    raw = value if value is not None else os.getenv(OPERATOR_ENV_VAR)
    if raw is None or not raw.strip():
        return None
    return _parse_uuid(raw.strip())


def package_to_dict(package: Package) -> dict[str, Any]:
    return {
        "id": str(package.id),
        "package_number": package.package_number,
        "status": str(package.status),
        "status_label": package.status.label,
        "validation_error_count": package.validation_error_count,
        "validation_warning_count": package.validation_warning_count,
        "person_duplicate_count": package.person_duplicate_count,
        "property_duplicate_count": package.property_duplicate_count,
        "conflict_count": package.conflict_count,
        "successful_import_count": package.successful_import_count,
        "failed_import_count": package.failed_import_count,
        "skipped_import_count": package.skipped_import_count,
        "import_summary": package.import_summary,
        "error_message": package.error_message,
        "archive_path": package.archive_path,
    }


def conflict_to_dict(conflict: Conflict) -> dict[str, Any]:
    return {
        "id": str(conflict.id),
        "conflict_number": conflict.conflict_number,
        "conflict_type": str(conflict.conflict_type),
        "status": str(conflict.status),
        "priority": str(conflict.priority),
        "is_escalated": conflict.is_escalated,
        "first_entity_id": str(conflict.first_entity_id),
        "first_entity_identifier": conflict.first_entity_identifier,
        "second_entity_id": str(conflict.second_entity_id),
        "second_entity_identifier": conflict.second_entity_identifier,
        "similarity_score": conflict.similarity_score,
        "confidence_level": str(conflict.confidence_level),
        "description": conflict.description,
        "resolution_action": (
            str(conflict.resolution_action) if conflict.resolution_action else None
        ),
        "merged_entity_id": str(conflict.merged_entity_id) if conflict.merged_entity_id else None,
        "discarded_entity_id": (
            str(conflict.discarded_entity_id) if conflict.discarded_entity_id else None
        ),
    }


def validation_to_dict(summary: ValidationSummary) -> dict[str, Any]:
    return {
        "package_id": str(summary.package_id),
        "total_records": summary.total_records,
        "valid_count": summary.valid_count,
        "invalid_count": summary.invalid_count,
        "skipped_count": summary.skipped_count,
        "error_count": summary.error_count,
        "warning_count": summary.warning_count,
        "levels": [
            {
                "level": report.level,
                "name": report.name,
                "error_count": report.error_count,
                "warning_count": report.warning_count,
                "records_checked": report.records_checked,
                "duration_seconds": report.duration.total_seconds(),
            }
            for report in summary.levels
        ],
    }


def detection_to_dict(result: DetectionResult) -> dict[str, Any]:
    return {
        "package_id": str(result.package_id),
        "total_conflicts": result.total_conflicts,
        "person_duplicates": result.person_duplicates,
        "property_duplicates": result.property_duplicates,
        "persons_scanned": result.persons_scanned,
        "units_scanned": result.units_scanned,
        "buildings_scanned": result.buildings_scanned,
        "conflicts": [conflict_to_dict(conflict) for conflict in result.conflicts],
    }


def status_to_dict(view: PackageStatusView) -> dict[str, Any]:
    return {
        "package": package_to_dict(view.package),
        "validation_counts": view.validation_counts,
        "open_conflicts": len(view.open_conflicts),
        "conflicts": [conflict_to_dict(conflict) for conflict in view.conflicts],
    }


def _dispatch(args: argparse.Namespace, user: UUID | None) -> dict[str, Any]:
    match args.command:
        case "validate":
            return validation_to_dict(app.validate_package(_parse_uuid(args.package_id), user=user))
        case "detect":
            return detection_to_dict(app.detect_duplicates(_parse_uuid(args.package_id), user=user))
        case "approve":
            record_ids = (
                [_parse_uuid(value) for value in args.record_ids] if args.record_ids else None
            )
            package = app.approve_package(
                _parse_uuid(args.package_id), user=user, record_ids=record_ids
            )
            return package_to_dict(package)
        case "resolve":
            conflict = app.resolve_conflict(
                _parse_uuid(args.conflict_id),
                args.action,
                reason=args.reason,
                user=user,
                notes=args.notes,
                master_id=_parse_uuid(args.master_id) if args.master_id else None,
            )
            return conflict_to_dict(conflict)
        case "commit":
            report = app.commit_package(
                _parse_uuid(args.package_id), user=user, cleanup_staging=args.cleanup_staging
            )
            return report.to_dict()
        case "cancel":
            package = app.cancel_package(
                _parse_uuid(args.package_id),
                args.reason,
                user=user,
                cleanup_staging=args.cleanup_staging,
            )
            return package_to_dict(package)
        case "quarantine":
            package = app.quarantine_package(_parse_uuid(args.package_id), args.reason, user=user)
            return package_to_dict(package)
        case "reset-commit":
            package = app.reset_commit(_parse_uuid(args.package_id), args.reason, user=user)
            return package_to_dict(package)
        case "status":
            return status_to_dict(app.package_status(_parse_uuid(args.package_id)))
        case _:
            raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> int:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        user = _resolve_operator(parsed_args.user)
        configure_logging(level=logging.DEBUG if parsed_args.verbose else None)
    except (ValueError, ConfigurationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    try:
        payload = _dispatch(parsed_args, user)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except ReconciliationError as exc:
        log.error("%s failed: %s", parsed_args.command, exc)  # noqa: TRY400
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        return 1

    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    sys.exit(main())


if __name__ == "__main__":
    run()

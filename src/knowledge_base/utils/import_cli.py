"""
Knowledge Base Import CLI

Command-line interface for bulk imports and import job inspection.

Usage Examples:
    # Validate a file without writing anything
    kb-import import export.json --dry-run

    # Import as a specific administrator
    kb-import import export.csv --user admin-7

    # List the ten most recent import jobs
    kb-import jobs

    # Show one job with its full error list
    kb-import job 12

    # Print the category tree
    kb-import tree

The database location comes from KB_DATABASE_URL, or from KB_ENV
(development keeps it under ./data, production under ~/.knowledge_base).
"""

import argparse
import logging
import sys
from typing import List, Optional

from knowledge_base.services.category_hierarchy_service import get_category_tree
from knowledge_base.services.database import close_connections, initialize_app_database
from knowledge_base.services.exceptions import ServiceError
from knowledge_base.services.import_job_service import get_job, list_jobs
from knowledge_base.services.import_service import ImportReport, run_import_file
from knowledge_base.services.import_types import ImportActor
from knowledge_base.utils.constants import DEFAULT_JOB_PAGE_SIZE

DEFAULT_USER = "cli-admin"

# Maximum errors printed in an import summary
MAX_PRINTED_ERRORS = 20


def print_report(report: ImportReport) -> None:
    """Print an import report as a readable summary."""
    stats = report.stats
    if report.dry_run:
        print("Dry run - nothing was written")
        print(f"  Valid: {'yes' if report.valid else 'no'}")
    elif report.job_id is not None:
        print(f"Import job {report.job_id}: {report.status or 'unknown'}")

    print(f"  Total: {stats.total}  Success: {stats.success}  Failed: {stats.failed}")

    if report.breakdown:
        for kind, counts in report.breakdown.items():
            print(f"  {kind.capitalize()}: {counts['valid']}/{counts['total']} valid")

    for warning in report.warnings:
        print(f"  WARNING: {warning}")

    if report.errors:
        print(f"  Errors ({len(report.errors)}):")
        for entry in report.errors[:MAX_PRINTED_ERRORS]:
            location = f"row {entry['row']}: " if "row" in entry else ""
            item = f"{entry['item']}: " if "item" in entry else ""
            print(f"    - {location}{item}{entry['error']}")
        if len(report.errors) > MAX_PRINTED_ERRORS:
            print(f"    ... and {len(report.errors) - MAX_PRINTED_ERRORS} more")


def import_cmd(file: str, user: str, dry_run: bool) -> int:
    """Import (or validate) one file."""
    print(f"{'Validating' if dry_run else 'Importing'} {file}...")
    try:
        report = run_import_file(file, ImportActor(user), dry_run=dry_run)
    except FileNotFoundError:
        print(f"ERROR: File not found: {file}")
        return 1
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1

    print_report(report)
    return 0 if report.succeeded else 1


def jobs_cmd(limit: int, offset: int) -> int:
    """List recent import jobs."""
    try:
        page = list_jobs(limit=limit, offset=offset)
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1

    if not page["jobs"]:
        print("No import jobs found")
        return 0

    print(f"Import jobs {offset + 1}-{offset + len(page['jobs'])} of {page['total']}:")
    for job in page["jobs"]:
        stats = job["stats"]
        flag = " (errors)" if job["has_errors"] else ""
        print(
            f"  #{job['id']} {job['status']:<10} {job['file_name']} "
            f"{stats.get('success', 0)}/{stats.get('total', 0)} ok{flag}"
        )
    return 0


def job_cmd(job_id: int) -> int:
    """Show one import job."""
    try:
        job = get_job(job_id)
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1

    stats = job["stats"]
    print(f"Import job {job['id']}")
    print(f"  File:      {job['file_name']}")
    print(f"  Status:    {job['status']}")
    print(f"  Created:   {job['created_at']} by {job['created_by']}")
    print(f"  Completed: {job['completed_at'] or '-'}")
    print(
        f"  Total: {stats.get('total', 0)}  Success: {stats.get('success', 0)}  "
        f"Failed: {stats.get('failed', 0)}"
    )
    for entry in job["errors"]:
        item = f"{entry['item']}: " if entry.get("item") else ""
        print(f"    - {item}{entry['error']}")
    return 0


def tree_cmd() -> int:
    """Print the category tree."""
    tree = get_category_tree()
    if not tree:
        print("No categories")
        return 0

    stack = list(reversed(tree))
    while stack:
        node = stack.pop()
        indent = "  " * node["depth"]
        print(f"{indent}- {node['name']} ({node['document_count']})")
        stack.extend(reversed(node["children"]))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kb-import",
        description="Bulk import utility for the knowledge base",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    import_parser = subparsers.add_parser("import", help="Import a CSV or JSON file")
    import_parser.add_argument("file", help="CSV or JSON file path")
    import_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate and report without writing anything",
    )
    import_parser.add_argument(
        "--user",
        default=DEFAULT_USER,
        help=f"Administrator recorded as creator (default: {DEFAULT_USER})",
    )

    jobs_parser = subparsers.add_parser("jobs", help="List recent import jobs")
    jobs_parser.add_argument("--limit", type=int, default=DEFAULT_JOB_PAGE_SIZE)
    jobs_parser.add_argument("--offset", type=int, default=0)

    job_parser = subparsers.add_parser("job", help="Show one import job")
    job_parser.add_argument("job_id", type=int, help="Import job ID")

    subparsers.add_parser("tree", help="Print the category tree")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    initialize_app_database()

    try:
        if args.command == "import":
            return import_cmd(args.file, args.user, args.dry_run)
        elif args.command == "jobs":
            return jobs_cmd(args.limit, args.offset)
        elif args.command == "job":
            return job_cmd(args.job_id)
        elif args.command == "tree":
            return tree_cmd()
        else:
            print(f"Unknown command: {args.command}")
            return 1
    finally:
        close_connections()


if __name__ == "__main__":
    sys.exit(main())

"""Command-line front end for onboarding, updating and offboarding users.

Single-user commands act on one principal name or object id; the bulk-*
commands read a CSV file and process it row by row.
"""
from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import requests

from lifecycle.config import AppConfig, load_settings
from lifecycle.core.batch import BatchProcessor
from lifecycle.core.directory import GraphDirectory
from lifecycle.core.gate import ConfirmationGate, ConsolePrompt
from lifecycle.core.graph import DirectoryError, GraphClient
from lifecycle.core.logger import VERBOSE, logging_session
from lifecycle.core.models import (
    Failed,
    OffboardAction,
    OffboardParams,
    OnboardParams,
    Success,
    UpdateParams,
)
from lifecycle.core.operations import OPERATIONS
from lifecycle.core.validators import split_list, validate_display_name, validate_principal_name


def connect_directory(settings: AppConfig, logger: logging.Logger) -> GraphDirectory:
    """Authenticate against Microsoft Graph and return a directory client."""
    client = GraphClient(settings.graph_api_url, settings.graph_login_url, settings.request_timeout)
    client.authenticate_client_credentials(settings.tenant_id, settings.client_id, settings.client_secret_resolved)
    claims = client.session_claims()
    logger.info(
        "Connected to tenant %s as %s",
        claims.get("tid", settings.tenant_id),
        claims.get("app_displayname") or claims.get("appid") or settings.client_id,
    )
    return GraphDirectory(client)


def _target_args(parser: argparse.ArgumentParser) -> None:
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--upn", help="User principal name")
    target.add_argument("--object-id", help="Directory object id")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Identity lifecycle automation (Microsoft Entra ID)")
    parser.add_argument("--tenant-id", help="Directory tenant id (default: GRAPH_TENANT_ID)")
    parser.add_argument("--client-id", help="Application client id (default: GRAPH_CLIENT_ID)")
    parser.add_argument("--client-secret", help="Application secret (default: GRAPH_CLIENT_SECRET or /run/secrets)")
    parser.add_argument("--operator", help="Operator identifier for audit logs (default: automation)")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without making them")
    parser.add_argument("--confirm", action="store_true", help="Prompt before every change")
    parser.add_argument("--log-dir", help="Log directory (default: LIFECYCLE_LOG_DIR or .runtime/logs)")
    parser.add_argument("--log-file", help="Log file name inside the log directory")
    parser.add_argument("--verbose", action="store_true", help="Include VERBOSE messages")
    parser.add_argument("--debug", action="store_true", help="Include DEBUG messages")

    sub = parser.add_subparsers(dest="cmd")

    so = sub.add_parser("onboard", help="Create one user")
    so.add_argument("--upn", required=True)
    so.add_argument("--display-name", required=True)
    so.add_argument("--password", help="Initial password (generated when omitted)")
    so.add_argument("--no-force-change-password", action="store_true")
    so.add_argument("--department")
    so.add_argument("--job-title")
    so.add_argument("--manager", help="Manager user principal name")
    so.add_argument("--groups", help="Comma separated group names or ids")
    so.add_argument("--licenses", help="Comma separated SKU ids or part numbers")
    so.add_argument("--usage-location", help="Two-letter country code required for licensing")

    su = sub.add_parser("update", help="Update one user")
    _target_args(su)
    su.add_argument("--display-name")
    su.add_argument("--department")
    su.add_argument("--job-title")
    su.add_argument("--office-location")
    su.add_argument("--street-address")
    su.add_argument("--city")
    su.add_argument("--state")
    su.add_argument("--postal-code")
    su.add_argument("--country")
    su.add_argument("--mobile-phone")
    su.add_argument("--office-phone")
    manager = su.add_mutually_exclusive_group()
    manager.add_argument("--manager", help="New manager user principal name")
    manager.add_argument("--clear-manager", action="store_true")
    su.add_argument("--add-groups", help="Comma separated groups to join")
    su.add_argument("--remove-groups", help="Comma separated groups to leave")
    su.add_argument("--assign-licenses", help="Comma separated licenses to add")
    su.add_argument("--remove-licenses", help="Comma separated licenses to remove")

    sf = sub.add_parser("offboard", help="Disable or delete one user")
    _target_args(sf)
    sf.add_argument("--action", choices=[a.value for a in OffboardAction], default=OffboardAction.DISABLE.value)
    sf.add_argument("--keep-sessions", action="store_true", help="Do not revoke sign-in sessions")
    sf.add_argument("--keep-licenses", action="store_true", help="Do not remove licenses")
    sf.add_argument("--remove-groups", action="store_true", help="Remove all group memberships")

    for kind in OPERATIONS:
        sb = sub.add_parser(f"bulk-{kind}", help=f"Run {kind} for every row of a CSV file")
        sb.add_argument("--csv", required=True, dest="csv_path")

    return parser


def params_from_args(args: argparse.Namespace):
    """Build the parameter object for a single-user command.

    Raises:
        ValueError: On invalid input
    """
    if args.cmd == "onboard":
        return OnboardParams(
            user_principal_name=validate_principal_name(args.upn),
            display_name=validate_display_name(args.display_name),
            password=args.password,
            force_change_password=not args.no_force_change_password,
            department=args.department,
            job_title=args.job_title,
            manager_upn=args.manager,
            initial_groups=split_list(args.groups),
            license_skus=split_list(args.licenses),
            usage_location=args.usage_location,
        )
    if args.cmd == "update":
        return UpdateParams(
            user_principal_name=args.upn,
            object_id=args.object_id,
            display_name=args.display_name,
            department=args.department,
            job_title=args.job_title,
            office_location=args.office_location,
            street_address=args.street_address,
            city=args.city,
            state=args.state,
            postal_code=args.postal_code,
            country=args.country,
            mobile_phone=args.mobile_phone,
            office_phone=args.office_phone,
            manager_upn="" if args.clear_manager else args.manager,
            groups_to_add=split_list(args.add_groups),
            groups_to_remove=split_list(args.remove_groups),
            licenses_to_assign=split_list(args.assign_licenses),
            licenses_to_remove=split_list(args.remove_licenses),
        )
    if args.cmd == "offboard":
        return OffboardParams(
            user_principal_name=args.upn,
            object_id=args.object_id,
            action=OffboardAction(args.action),
            revoke_sessions=not args.keep_sessions,
            remove_licenses=not args.keep_licenses,
            remove_from_groups=args.remove_groups,
        )
    raise ValueError(f"Unknown command '{args.cmd}'")


def main(argv: list[str] | None = None) -> None:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return

    settings = load_settings()
    settings.tenant_id = args.tenant_id or settings.tenant_id
    settings.client_id = args.client_id or settings.client_id
    settings.client_secret = args.client_secret or settings.client_secret
    settings.operator = args.operator or settings.operator
    settings.log_dir = args.log_dir or settings.log_dir
    settings.log_file = args.log_file or settings.log_file
    if not settings.has_credentials:
        parser.error("Missing tenant id or client id (set GRAPH_TENANT_ID / GRAPH_CLIENT_ID)")

    kind = args.cmd[len("bulk-"):] if args.cmd.startswith("bulk-") else args.cmd
    single_params = None
    if kind == args.cmd:
        try:
            single_params = params_from_args(args)
        except ValueError as e:
            parser.error(str(e))

    level = logging.DEBUG if args.debug else VERBOSE if args.verbose else logging.INFO
    with logging_session(settings.log_dir, settings.log_file or None, level=level) as logger:
        try:
            directory = connect_directory(settings, logger)
        except (DirectoryError, requests.RequestException, RuntimeError) as e:
            logger.error("FATAL: could not connect to the directory: %s", e)
            sys.exit(1)

        gate = ConfirmationGate(
            dry_run=args.dry_run or settings.dry_run,
            confirm=ConsolePrompt() if args.confirm else None,
            logger=logger,
        )
        options = {"default_usage_location": settings.default_usage_location or None} if kind == "onboard" else {}
        operation = OPERATIONS[kind](directory, gate=gate, logger=logger, operator=settings.operator, **options)

        if single_params is not None:
            result = operation(single_params)
            print(result)
            if isinstance(result, Success) and result.generated_password:
                print(f"Temporary password: {result.generated_password}")
            if isinstance(result, Failed):
                sys.exit(1)
            return

        summary = BatchProcessor(directory, operation, gate=gate, logger=logger).run(args.csv_path)
        print(
            f"Processed {summary.processed}/{summary.total}: "
            f"{summary.succeeded} succeeded, {summary.failed} not completed ({summary.skipped} skipped)"
        )
        if summary.aborted or summary.failed > summary.skipped:
            sys.exit(1)


if __name__ == "__main__":
    main()

"""
Command-line interface for the ProSBC file client.

Provides argument parsing and the per-subcommand execution flow.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path

import urllib3
from tqdm import tqdm

from .batch import BatchCoordinator, BatchItem
from .client import ApplianceClient
from .config import DEFAULT_BASE_URL, DEFAULT_FILE_DB_ID, DEFAULT_PASSWORD, DEFAULT_USER
from .errors import ApplianceError, BatchAborted
from .forms import payload_from_path
from .logging_setup import log, setup_logging
from .models import Operation, OperationResult, Payload, ResourceKind
from .orchestrator import RetryOrchestrator


def _kind(value: str) -> ResourceKind:
    try:
        return ResourceKind.parse(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"unknown file kind {value!r} (use df or dm)")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="prosbc-files",
        description="Manage routeset Definition (df) and Digit Map (dm) files "
                    "on a ProSBC appliance.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Connection settings can also be provided via the PROSBC_BASE_URL,\n"
            "PROSBC_USERNAME and PROSBC_PASSWORD env vars.  If the password is\n"
            "not supplied anywhere, you will be prompted for it."
        ),
    )
    parser.add_argument(
        "--url", default=DEFAULT_BASE_URL,
        help="Appliance base URL (overrides PROSBC_BASE_URL env var)",
    )
    parser.add_argument(
        "--user", default=DEFAULT_USER,
        help=f"Admin username (default: {DEFAULT_USER})",
    )
    parser.add_argument(
        "--password", default=DEFAULT_PASSWORD,
        help="Admin password (overrides PROSBC_PASSWORD env var)",
    )
    parser.add_argument(
        "--db", type=int, default=DEFAULT_FILE_DB_ID,
        help=f"File database id (default: {DEFAULT_FILE_DB_ID})",
    )
    parser.add_argument(
        "--no-verify-ssl", dest="verify_ssl", action="store_false", default=True,
        help="Disable TLS certificate verification (use for self-signed certs)",
    )
    parser.add_argument(
        "--retries", type=int, default=3,
        help="Attempts per write when the session expires (default: 3)",
    )
    parser.add_argument("--log-file", default=None, help="Also write DEBUG output to this file")
    parser.add_argument("--debug", action="store_true", help="Enable verbose debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List files of one or both kinds")
    p.add_argument("kind", nargs="?", default="all",
                   choices=["df", "dm", "definition", "digitmap", "all"],
                   help="df, dm or all (default: all)")

    p = sub.add_parser("export", help="Download a file's content")
    p.add_argument("kind", type=_kind)
    p.add_argument("record_id")
    p.add_argument("-o", "--output", default=None,
                   help="Destination path (default: print to stdout)")

    p = sub.add_parser("upload", help="Create a new file from a local file")
    p.add_argument("kind", type=_kind)
    p.add_argument("path", type=Path)

    p = sub.add_parser("update", help="Replace an existing file's content")
    p.add_argument("kind", type=_kind)
    p.add_argument("record_id")
    p.add_argument("path", type=Path)

    p = sub.add_parser("delete", help="Delete a file")
    p.add_argument("kind", type=_kind)
    p.add_argument("record_id")

    p = sub.add_parser(
        "update-many",
        help="Update several files in sequence",
        description="Each target is ID=PATH, or a bare PATH matched to the "
                    "appliance file with the same name.",
    )
    p.add_argument("kind", type=_kind)
    p.add_argument("targets", nargs="+")
    p.add_argument("--continue-on-error", action="store_true",
                   help="Keep going after a failed file (default: stop at the first failure)")

    sub.add_parser("status", help="Check whether the appliance is reachable")

    return parser.parse_args(argv)


def _print_result(result: OperationResult) -> None:
    status = "OK" if result.success else "FAILED"
    print(f"{status}: {result.message} (HTTP {result.http_status}, "
          f"{result.attempts} attempt(s), outcome {result.outcome.value})")
    if result.note:
        print(f"  note: {result.note}")
    if not result.success and result.details:
        print(f"  details: {result.details}")


def _cmd_list(client: ApplianceClient, args: argparse.Namespace) -> int:
    if args.kind == "all":
        listings = client.list_all()
    else:
        kind = _kind(args.kind)
        listings = {kind: client.list_files(kind)}
    for kind, files in listings.items():
        print(kind.section_label)
        if not files:
            print("  (none)")
        for f in files:
            print(f"  {f.remote_id:>6}  {f.display_name}")
    return 0


def _cmd_export(client: ApplianceClient, args: argparse.Namespace) -> int:
    if args.output:
        client.export_to(args.kind, args.record_id, args.output)
    else:
        sys.stdout.write(client.fetch_content(args.kind, args.record_id))
    return 0


def _resolve_targets(client: ApplianceClient, kind: ResourceKind, targets: list[str]) -> list[BatchItem]:
    by_name = None
    items = []
    for target in targets:
        record_id, sep, path = target.partition("=")
        if not sep:
            path = target
            if by_name is None:
                by_name = {f.display_name: f.remote_id for f in client.list_files(kind)}
            record_id = by_name.get(Path(path).name)
            if record_id is None:
                raise ApplianceError(f"No {kind.short_name} file named {Path(path).name!r} on the appliance")
        items.append(BatchItem(kind, payload_from_path(Operation.UPDATE, path, record_id=record_id)))
    return items


def _cmd_update_many(orchestrator: RetryOrchestrator, args: argparse.Namespace) -> int:
    items = _resolve_targets(orchestrator.client, args.kind, args.targets)
    bar = tqdm(
        total=len(items),
        desc="Updating",
        unit="file",
        dynamic_ncols=True,
    )
    stats = {"ok": 0, "err": 0}

    def _done(item: BatchItem, result: OperationResult, index: int, total: int) -> None:
        stats["ok" if result.success else "err"] += 1
        bar.update(1)
        bar.set_postfix(ok=stats["ok"], err=stats["err"])
        if not result.success:
            bar.write(f"FAILED {item.label}: {result.message}")

    coordinator = BatchCoordinator(orchestrator)
    try:
        batch = coordinator.run_batch(
            items,
            continue_on_error=args.continue_on_error,
            on_file_complete=_done,
            max_retries=args.retries,
        )
    except BatchAborted as exc:
        bar.close()
        log.error("%s", exc.message)
        log.error("Completed %d of %d file(s) before stopping", len(exc.result.results),
                  exc.result.total_files)
        return 1
    bar.close()
    log.info("%d succeeded, %d failed", batch.success_count, batch.failure_count)
    return 0 if batch.success else 1


def _cmd_status(client: ApplianceClient, args: argparse.Namespace) -> int:
    status = client.get_system_status()
    code = status.get("status_code")
    print(f"{client.base}: {status['status']}" + (f" (HTTP {code})" if code else ""))
    return 0 if status["is_online"] else 1


def run(args: argparse.Namespace) -> int:
    client = ApplianceClient(
        args.url,
        args.user,
        args.password,
        file_db_id=args.db,
        verify_ssl=args.verify_ssl,
    )
    orchestrator = RetryOrchestrator(client, max_retries=args.retries)
    with client:
        if args.command == "list":
            return _cmd_list(client, args)
        if args.command == "export":
            return _cmd_export(client, args)
        if args.command == "status":
            return _cmd_status(client, args)
        if args.command == "update-many":
            return _cmd_update_many(orchestrator, args)

        if args.command == "upload":
            payload = payload_from_path(Operation.CREATE, args.path)
        elif args.command == "update":
            payload = payload_from_path(Operation.UPDATE, args.path, record_id=args.record_id)
        else:
            payload = Payload(Operation.DELETE, record_id=str(args.record_id))
        result = orchestrator.run(args.kind, payload)
        _print_result(result)
        return 0 if result.success else 1


def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the prosbc-files CLI.
    """
    args = parse_args(argv)

    setup_logging(debug=args.debug, log_file=args.log_file)

    if args.debug:
        logging.getLogger("urllib3").setLevel(logging.DEBUG)

    if not args.verify_ssl:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        log.warning("TLS certificate verification is DISABLED (--no-verify-ssl)")

    if not args.url:
        log.error("No appliance URL given (use --url or PROSBC_BASE_URL)")
        sys.exit(2)

    if not args.password and args.command != "status":
        args.password = getpass.getpass("ProSBC password: ")

    try:
        code = run(args)
    except ApplianceError as exc:
        log.error("%s", exc.message)
        if exc.details:
            log.debug("Details: %s", exc.details)
        code = 1
    except OSError as exc:
        log.error("File error: %s", exc)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()

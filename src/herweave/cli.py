"""Herweave CLI: command-line interface for the mutual-aid ledger.

Usage:
    python -m herweave.cli status
    python -m herweave.cli register --id alice --name Alice --location Paris
    python -m herweave.cli create-request --requester alice --title Ride \
        --description "need pickup" --location Paris --help-type 0
    python -m herweave.cli accept-request --request-id 1 --helper bob
    python -m herweave.cli complete-request --request-id 1 --caller alice
    python -m herweave.cli submit-review --request-id 1 --reviewer bob \
        --reviewed alice --rating 5 --comment great
    python -m herweave.cli check-invariants

State persists between invocations in the data directory
(HERWEAVE_DATA_DIR, default data/). Each invocation holds an exclusive
lock on <data-dir>/.lock from loading state until it exits, so concurrent
invocations run one after another.
"""

from __future__ import annotations

import argparse
import contextlib
import dataclasses
import enum
import fcntl
import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterator

from herweave.errors import LedgerError
from herweave.models.request import HelpType
from herweave.persistence.event_log import EventLog
from herweave.persistence.state_store import StateStore
from herweave.policy.resolver import PolicyResolver
from herweave.service import HerweaveService, ServiceResult
from herweave.settings import Settings

logger = logging.getLogger(__name__)

LOCK_FILENAME = ".lock"


def _make_service(config_dir: Path, data_dir: Path) -> HerweaveService:
    """Create a HerweaveService with durable persistence."""
    data_dir.mkdir(parents=True, exist_ok=True)
    resolver = PolicyResolver.from_config_dir(config_dir)
    event_log = EventLog(storage_path=data_dir / "events.jsonl")
    state_store = StateStore(storage_path=data_dir / "state.json")
    return HerweaveService(resolver, event_log=event_log, state_store=state_store)


@contextlib.contextmanager
def _data_dir_lock(data_dir: Path) -> Iterator[None]:
    """Hold an exclusive lock on the data directory for one invocation."""
    data_dir.mkdir(parents=True, exist_ok=True)
    with (data_dir / LOCK_FILENAME).open("w") as lock_fd:
        fcntl.flock(lock_fd.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_fd.fileno(), fcntl.LOCK_UN)


def _jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, dict):
        return {str(_jsonable(k)): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _print(value: Any) -> None:
    print(json.dumps(_jsonable(value), indent=2, default=str, ensure_ascii=False))


def _report(result: ServiceResult) -> int:
    if result.success:
        _print(result.data)
        return 0
    kind = result.error_kind.value if result.error_kind else "error"
    print(f"Failed ({kind}): {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_status(service: HerweaveService, args: argparse.Namespace) -> int:
    _print(service.status())
    return 0


def cmd_register(service: HerweaveService, args: argparse.Namespace) -> int:
    return _report(service.register(args.id, args.name, args.location))


def cmd_create_request(service: HerweaveService, args: argparse.Namespace) -> int:
    return _report(service.create_request(
        requester=args.requester,
        title=args.title,
        description=args.description,
        location=args.location,
        help_type=args.help_type,
    ))


def cmd_accept_request(service: HerweaveService, args: argparse.Namespace) -> int:
    return _report(service.accept_request(args.request_id, args.helper))


def cmd_complete_request(service: HerweaveService, args: argparse.Namespace) -> int:
    return _report(service.complete_request(args.request_id, args.caller))


def cmd_submit_review(service: HerweaveService, args: argparse.Namespace) -> int:
    return _report(service.submit_review(
        request_id=args.request_id,
        reviewer=args.reviewer,
        reviewed=args.reviewed,
        rating=args.rating,
        comment=args.comment,
    ))


def cmd_account(service: HerweaveService, args: argparse.Namespace) -> int:
    account = service.get_account(args.id)
    if account is None:
        print(f"Not registered: {args.id}", file=sys.stderr)
        return 1
    _print(account)
    return 0


def cmd_request(service: HerweaveService, args: argparse.Namespace) -> int:
    request = service.get_request(args.request_id)
    if request is None:
        print(f"Unknown request: {args.request_id}", file=sys.stderr)
        return 1
    _print(request)
    return 0


def cmd_open_requests(service: HerweaveService, args: argparse.Namespace) -> int:
    _print(service.open_requests())
    return 0


def cmd_my_requests(service: HerweaveService, args: argparse.Namespace) -> int:
    _print(service.dashboard(args.id))
    return 0


def cmd_reviews(service: HerweaveService, args: argparse.Namespace) -> int:
    if args.request_id is not None:
        _print(service.get_reviews_for_request(args.request_id))
    else:
        _print(service.get_reviews_for_identity(args.id))
    return 0


def cmd_cost(service: HerweaveService, args: argparse.Namespace) -> int:
    if args.help_type is None:
        _print({
            "costs": {h.label: c for h, c in service.cost_schedule().items()},
            "match_reward": service.match_reward(),
        })
        return 0
    try:
        cost = service.cost_for(args.help_type)
    except LedgerError as e:
        print(f"Failed ({e.kind.value}): {e.message}", file=sys.stderr)
        return 1
    _print({"help_type": HelpType(args.help_type).label, "cost": cost})
    return 0


def cmd_check_invariants(service: HerweaveService, args: argparse.Namespace) -> int:
    """Check ledger invariants over the persisted state."""
    errors = service.check_invariants()
    if errors:
        for error in errors:
            print(f"FAIL: {error}", file=sys.stderr)
        return 1
    print("All ledger invariants hold.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="herweave",
        description="Herweave mutual-aid marketplace ledger CLI",
    )
    parser.add_argument(
        "--config", type=Path, default=None,
        help="Path to config directory (default: HERWEAVE_CONFIG_DIR or config/)",
    )
    parser.add_argument(
        "--data-dir", type=Path, default=None,
        help="Path to data directory (default: HERWEAVE_DATA_DIR or data/)",
    )
    parser.add_argument(
        "--log-level", default=None,
        help="Logging level (default: HERWEAVE_LOG_LEVEL or WARNING)",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show ledger status")

    p_reg = sub.add_parser("register", help="Register a member")
    p_reg.add_argument("--id", required=True, help="Member identity")
    p_reg.add_argument("--name", default="", help="Display name")
    p_reg.add_argument("--location", default="", help="Location label")

    p_create = sub.add_parser("create-request", help="Post a help request")
    p_create.add_argument("--requester", required=True, help="Requester identity")
    p_create.add_argument("--title", required=True, help="Request title")
    p_create.add_argument("--description", default="", help="Request description")
    p_create.add_argument("--location", default="", help="Location label")
    p_create.add_argument(
        "--help-type", type=int, required=True,
        help="Help type: " + ", ".join(f"{h.value}={h.label}" for h in HelpType),
    )

    p_accept = sub.add_parser("accept-request", help="Accept an open request")
    p_accept.add_argument("--request-id", type=int, required=True, help="Request ID")
    p_accept.add_argument("--helper", required=True, help="Helper identity")

    p_complete = sub.add_parser("complete-request", help="Complete a matched request")
    p_complete.add_argument("--request-id", type=int, required=True, help="Request ID")
    p_complete.add_argument("--caller", required=True, help="Requester or helper identity")

    p_review = sub.add_parser("submit-review", help="Review a completed request")
    p_review.add_argument("--request-id", type=int, required=True, help="Request ID")
    p_review.add_argument("--reviewer", required=True, help="Reviewer identity")
    p_review.add_argument("--reviewed", required=True, help="Reviewed identity")
    p_review.add_argument("--rating", type=int, required=True, help="Rating 1-5")
    p_review.add_argument("--comment", default="", help="Comment")

    p_account = sub.add_parser("account", help="Show a member's account")
    p_account.add_argument("--id", required=True, help="Member identity")

    p_request = sub.add_parser("request", help="Show a request")
    p_request.add_argument("--request-id", type=int, required=True, help="Request ID")

    sub.add_parser("open-requests", help="List open requests")

    p_mine = sub.add_parser("my-requests", help="A member's requests by status")
    p_mine.add_argument("--id", required=True, help="Member identity")

    p_reviews = sub.add_parser("reviews", help="List reviews")
    target = p_reviews.add_mutually_exclusive_group(required=True)
    target.add_argument("--request-id", type=int, help="Reviews of a request")
    target.add_argument("--id", help="Reviews received by a member")

    p_cost = sub.add_parser("cost", help="Show the credit cost schedule")
    p_cost.add_argument("--help-type", type=int, default=None, help="Single help type")

    sub.add_parser("check-invariants", help="Run ledger invariant checks")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    settings = Settings.from_env()
    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "status": cmd_status,
        "register": cmd_register,
        "create-request": cmd_create_request,
        "accept-request": cmd_accept_request,
        "complete-request": cmd_complete_request,
        "submit-review": cmd_submit_review,
        "account": cmd_account,
        "request": cmd_request,
        "open-requests": cmd_open_requests,
        "my-requests": cmd_my_requests,
        "reviews": cmd_reviews,
        "cost": cmd_cost,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    data_dir = args.data_dir or settings.data_dir
    with _data_dir_lock(data_dir):
        service = _make_service(args.config or settings.config_dir, data_dir)
        logger.debug("Running %s against %s", args.command, data_dir)
        return handler(service, args)


if __name__ == "__main__":
    raise SystemExit(main())

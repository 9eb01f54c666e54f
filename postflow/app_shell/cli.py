import argparse
import logging
import sys

from postflow.adapters.sqlite.migrator import SQLiteMigrator
from postflow.app_shell.config import Settings, migrations_dir
from postflow.app_shell.context import ServiceContext
from postflow.core.ports.db import NotFoundError, RepoError
from postflow.rules.loader import load_rules
from postflow.services.post import BULK_ACTIONS

logger = logging.getLogger("cli")


def get_context(settings: Settings) -> ServiceContext:
    if not settings.rules_path.exists():
        logger.error("Rules file %s not found.", settings.rules_path)
        sys.exit(1)

    rules = load_rules(settings.rules_path)
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return ServiceContext.create(settings.db_path, settings.uploads_dir, rules)


def handle_migrate(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    applied = SQLiteMigrator(settings.db_path, migrations_dir()).run_migrations()
    print(f"Applied {len(applied)} migration(s).")


def drain_lanes(ctx: ServiceContext) -> int:
    """Run every queued listener job in this process. Returns failed job count."""
    for lane in ctx.lanes:
        result = ctx.worker.run_pending(lane)
        if result.total_processed:
            print(
                f"[{lane}] processed={result.total_processed} succeeded={result.succeeded} "
                f"retried={result.retried} failed={result.failed}"
            )

    for job in ctx.queue.failed:
        print(f"FAILED {job.queue} {job.name} attempts={job.attempts}: {job.error_message}")
    return len(ctx.queue.failed)


def handle_publish(ctx: ServiceContext, args: argparse.Namespace) -> int:
    try:
        post = ctx.post_service.update(args.post_id, {"status": "published"})
    except NotFoundError as e:
        logger.error("%s", e)
        return 1
    print(f"Published post {post.id} ({post.slug}) at {post.published_at}")
    return 1 if drain_lanes(ctx) else 0


def handle_bulk(ctx: ServiceContext, args: argparse.Namespace) -> int:
    result = ctx.post_service.bulk_action(args.action, args.post_ids)
    print(f"{result.action}: success={result.success} failed={result.failed}")
    drain_lanes(ctx)
    return 1 if result.failed else 0


def handle_sweep_orphans(ctx: ServiceContext, args: argparse.Namespace) -> int:
    known = ctx.related_repo.list_image_paths()
    if args.dry_run:
        orphans = [
            p
            for p in sorted(ctx.file_store.base_path.rglob("*"))
            if p.is_file() and p.relative_to(ctx.file_store.base_path).as_posix() not in known
        ]
        for path in orphans:
            print(f"would remove {path.relative_to(ctx.file_store.base_path).as_posix()}")
        return 0

    removed = ctx.file_store.sweep_orphans(known)
    for path in removed:
        print(f"removed {path}")
    print(f"Removed {len(removed)} orphaned file(s).")
    return 0


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO)

    parser = argparse.ArgumentParser(description="postflow CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # migrate
    subparsers.add_parser("migrate", help="Apply pending database migrations")

    # publish
    publish_parser = subparsers.add_parser(
        "publish", help="Publish a post and run its listener jobs"
    )
    publish_parser.add_argument("post_id", type=int)

    # bulk
    bulk_parser = subparsers.add_parser("bulk", help="Apply an admin bulk action")
    bulk_parser.add_argument("action", choices=BULK_ACTIONS)
    bulk_parser.add_argument("post_ids", type=int, nargs="+")

    # sweep-orphans
    sweep_parser = subparsers.add_parser(
        "sweep-orphans", help="Remove upload files no image record references"
    )
    sweep_parser.add_argument("--dry-run", action="store_true", help="List without deleting")

    args = parser.parse_args(argv)
    settings = Settings.from_env()

    if args.command == "migrate":
        handle_migrate(settings)
        return 0

    ctx = get_context(settings)
    try:
        if args.command == "publish":
            return handle_publish(ctx, args)
        if args.command == "bulk":
            return handle_bulk(ctx, args)
        if args.command == "sweep-orphans":
            return handle_sweep_orphans(ctx, args)
    except RepoError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

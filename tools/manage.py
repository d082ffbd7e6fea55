#!/usr/bin/env python3
"""
Bridge Indexer Management CLI

Commands for operating the indexer:
- replay: Apply a JSON-lines event file to the configured store
- derive-id: Print the derived id for a salt and block number
- init-schema: Create the PostgreSQL tables
- show: Print records from one collection
- health-check: Run health checks against the configured store

Usage:
    python -m tools.manage <command> [options]

Examples:
    python -m tools.manage replay events.jsonl
    cat events.jsonl | python -m tools.manage replay -
    python -m tools.manage derive-id 0 16
    python -m tools.manage show messages --status APPROVED --since-block 100
"""

import argparse
import json
import sys


def _read_events(source):
    """Yield (line number, mapping) for each non-blank JSON line."""
    for lineno, line in enumerate(source, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            yield lineno, json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"line {lineno}: invalid JSON ({e.msg})") from e


def cmd_replay(args):
    """Apply events from a JSON-lines file in order."""
    from bridge_indexer.core import MalformedEventError
    from bridge_indexer.runtime import get_engine

    engine = get_engine()
    diagnostics_before = len(engine.diagnostics)
    linenos = []

    def events(source):
        for lineno, data in _read_events(source):
            linenos.append(lineno)
            yield data

    source = sys.stdin if args.file == "-" else open(args.file, encoding="utf-8")
    try:
        summary = engine.apply_all(events(source))
    except MalformedEventError as e:
        print(f"ERROR: line {linenos[e.index]}: {e}", file=sys.stderr)
        for error in e.errors:
            loc = ".".join(str(part) for part in error.get("loc", ()))
            print(f"  {loc}: {error.get('msg')}", file=sys.stderr)
        print(f"Stopped after {e.index} events", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        if source is not sys.stdin:
            source.close()

    print(f"Applied {summary.event_count} events")
    for outcome, count in sorted(summary.outcomes.items(), key=lambda item: item[0].value):
        print(f"  {outcome.value}: {count}")
    print(f"Last block: {summary.last_block_number}")

    new_diagnostics = engine.diagnostics[diagnostics_before:]
    if new_diagnostics:
        print(f"\n{len(new_diagnostics)} diagnostics:")
        for diagnostic in new_diagnostics:
            print(f"  [{diagnostic.severity.value}] block {diagnostic.block_number}: {diagnostic.message}")

    return 0


def cmd_derive_id(args):
    """Print the id derived from a salt and block number."""
    from bridge_indexer.core import IdentifierError, derive_message_id

    try:
        print(derive_message_id(args.salt, args.block))
    except IdentifierError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    return 0


def cmd_init_schema(args):
    """Create the entity tables in PostgreSQL."""
    from bridge_indexer.db.config import get_database_config
    from bridge_indexer.db.store import StoreConnectionError
    from bridge_indexer.runtime import create_postgres_store

    config = get_database_config()
    if config is None:
        print("No database configured (set DATABASE_URL or DATABASE_HOST)", file=sys.stderr)
        return 1

    try:
        store = create_postgres_store(config, ensure_schema=False)
    except StoreConnectionError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    store.ensure_schema()
    print(f"Schema ready on {config.to_url(include_password=False)}")
    return 0


def cmd_show(args):
    """Print records from one collection as JSON lines."""
    from bridge_indexer.runtime import get_entity_store
    from bridge_indexer.schemas import Collection

    try:
        collection = Collection(args.collection)
    except ValueError:
        valid = ", ".join(c.value for c in Collection)
        print(f"Unknown collection {args.collection!r}. Valid: {valid}", file=sys.stderr)
        return 1

    repository = get_entity_store().repository(collection)
    entities = repository.list(
        status=args.status,
        since_block=args.since_block,
        limit=args.limit,
        offset=args.offset,
    )
    for entity in entities:
        print(json.dumps(entity.model_dump(mode="json"), sort_keys=True))

    if not entities:
        print("(no records)", file=sys.stderr)
    return 0


def cmd_health_check(args):
    """Run health checks against the configured store."""
    from bridge_indexer.observability import check_health
    from bridge_indexer.runtime import get_entity_store

    health = check_health(store=get_entity_store())

    for name, check in health.checks.items():
        status = check.get("status", "unknown")
        marker = "OK" if status == "healthy" else "FAIL"
        print(f"[{marker}] {name}")
        for key, value in check.items():
            if key != "status":
                print(f"    {key}: {value}")

    print(f"\nOverall: {'healthy' if health.healthy else 'UNHEALTHY'} ({health.duration_ms}ms)")
    return 0 if health.healthy else 1


def build_parser():
    parser = argparse.ArgumentParser(
        description="Bridge Indexer Management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # replay
    p_replay = subparsers.add_parser(
        "replay",
        help="Apply a JSON-lines event file to the store"
    )
    p_replay.add_argument("file", help="Event file, or - for stdin")

    # derive-id
    p_derive = subparsers.add_parser(
        "derive-id",
        help="Derive the id for a salt and block number"
    )
    p_derive.add_argument("salt", help="Hex salt (limit messages use 0)")
    p_derive.add_argument("block", type=int, help="Block number")

    # init-schema
    subparsers.add_parser(
        "init-schema",
        help="Create PostgreSQL tables"
    )

    # show
    p_show = subparsers.add_parser(
        "show",
        help="Print records from a collection"
    )
    p_show.add_argument("collection", help="Collection name, e.g. messages")
    p_show.add_argument("--status", help="Filter by status")
    p_show.add_argument("--since-block", type=int, help="Only records from this block on")
    p_show.add_argument("--limit", type=int, default=100)
    p_show.add_argument("--offset", type=int, default=0)

    # health-check
    subparsers.add_parser(
        "health-check",
        help="Run health checks"
    )

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "replay": cmd_replay,
        "derive-id": cmd_derive_id,
        "init-schema": cmd_init_schema,
        "show": cmd_show,
        "health-check": cmd_health_check,
    }

    return commands[args.command](args) or 0


if __name__ == "__main__":
    sys.exit(main())

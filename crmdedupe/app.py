import argparse
from pathlib import Path
from typing import List, Optional

from . import __version__
from .civicrm import CiviCrmClient
from .config import Settings, parse_resolver_list
from .database import init_database
from .env import load_env
from .logger import get_logger
from .merge import Merge
from .resolvers import RESOLVERS, available_resolvers
from .runlog import RunStatistics
from .storage import SqlContactStore
from .tuples import load_tuples


def _parse_ids(value: str) -> List[int]:
    try:
        return [int(v.strip()) for v in value.split(",") if v.strip()]
    except ValueError:
        raise SystemExit(f"Contact IDs must be comma-separated integers: {value}")


def build_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    if getattr(args, "backend", None):
        settings.backend = args.backend
    if getattr(args, "db", None):
        settings.db_path = Path(args.db)
    if getattr(args, "civicrm_url", None):
        settings.civicrm_url = args.civicrm_url
    if getattr(args, "resolvers", None) is not None:
        settings.resolvers = parse_resolver_list(args.resolvers)
    if getattr(args, "force", False):
        settings.force_merge = True
    if getattr(args, "merge_log", None):
        settings.merge_log = Path(args.merge_log)
    return settings


def open_store(settings: Settings):
    errors = settings.validate()
    if errors:
        raise SystemExit("\n".join(errors))
    if settings.backend == "civicrm":
        return CiviCrmClient(settings.civicrm_url, settings.civicrm_api_key, settings.civicrm_site_key)
    if not settings.db_path.exists():
        raise SystemExit(f"Database not found: {settings.db_path} (run 'crmdedupe init-db' first)")
    return SqlContactStore(settings.db_path)


def print_summary(stats: RunStatistics, merge_log: Optional[Path]) -> None:
    print(f"Tuples merged:      {stats.tuples_merged}")
    print(f"Contacts merged:    {stats.contacts_merged}")
    print(f"Conflicts resolved: {stats.conflicts_resolved}")
    if stats.failed:
        print(f"Failed:             {', '.join(f'[{m}] <- [{o}]' for m, o in stats.failed)}")
    if stats.errors:
        print("Errors:")
        for e in stats.errors:
            print(f" - {e}")
    if merge_log:
        print(f"Merge log: {merge_log}")


def _run(settings: Settings, tuples) -> None:
    get_logger().set_level(settings.log_level)
    store = open_store(settings)
    with Merge(
        store,
        resolvers=settings.resolvers,
        force_merge=settings.force_merge,
        merge_log=settings.merge_log,
    ) as merge:
        stats = merge.run(tuples)
        print_summary(stats, merge.merge_log_path)
    get_logger().log_metrics_summary()
    if stats.errors:
        raise SystemExit(1)


def cmd_init_db(args: argparse.Namespace) -> None:
    db_path = Path(args.db)
    init_database(db_path)
    print(f"Database ready: {db_path}")


def cmd_merge(args: argparse.Namespace) -> None:
    others = _parse_ids(args.others)
    if not others:
        raise SystemExit("No other contacts given. Use --others ID,ID")
    _run(build_settings(args), [(args.main, others)])


def cmd_merge_file(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    try:
        tuples = load_tuples(input_path)
    except ValueError as e:
        raise SystemExit(str(e))
    if not tuples:
        print("No tuples found.")
        return
    print(f"Found {len(tuples)} tuples. Merging...")
    _run(build_settings(args), tuples)


def cmd_resolvers(args: argparse.Namespace) -> None:
    for name in available_resolvers():
        resolver = RESOLVERS[name](None)
        print(f"{name}: {resolver.get_name()}")
        print(f"  {resolver.get_help()}")


def _add_run_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--backend", choices=["sqlite", "civicrm"], help="Contact store (default: XDEDUPE_BACKEND or sqlite)")
    parser.add_argument("--db", help="SQLite database path (default: XDEDUPE_DB_PATH or data/crm.db)")
    parser.add_argument("--civicrm-url", help="CiviCRM base URL (or set CIVICRM_URL)")
    parser.add_argument("--resolvers", help="Comma-separated resolver names, applied in this order")
    parser.add_argument("--force", action="store_true", help="Use force mode for the merge (default: safe)")
    parser.add_argument("--merge-log", help="Append the merge log to this file (default: temp file)")


def main():
    load_env()
    parser = argparse.ArgumentParser(prog="crmdedupe", description="Resolve conflicts and merge duplicate CRM contacts")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    ini = subparsers.add_parser("init-db", help="Create the SQLite contact store")
    ini.add_argument("--db", default="data/crm.db", help="SQLite database path (default: data/crm.db)")
    ini.set_defaults(func=cmd_init_db)

    mrg = subparsers.add_parser("merge", help="Merge other contacts into a main contact")
    mrg.add_argument("--main", type=int, required=True, help="Main contact ID (survives)")
    mrg.add_argument("--others", required=True, help="Comma-separated IDs of the contacts to merge into main")
    _add_run_arguments(mrg)
    mrg.set_defaults(func=cmd_merge)

    mrf = subparsers.add_parser("merge-file", help="Merge all tuples from a finder CSV (main,other,other...)")
    mrf.add_argument("--input", required=True, help="CSV file with one tuple per line")
    _add_run_arguments(mrf)
    mrf.set_defaults(func=cmd_merge_file)

    res = subparsers.add_parser("resolvers", help="List available resolvers")
    res.set_defaults(func=cmd_resolvers)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()

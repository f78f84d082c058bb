"""
CLI Interface for the Crisis Monitor

Provides command-line access to crisis detection, the crisis lifecycle and
the dashboard.
"""

import argparse
import json
import logging
import sys

from config import get_workspace_settings, load_monitoring_config

from .dashboard import CrisisDashboard
from .errors import CrisisMonitorError
from .lifecycle import CrisisLifecycleManager
from .monitor import CrisisMonitor
from .options import MonitorOptions
from .scheduler import CrisisScheduler

SEVERITY_ICONS = {"LOW": "🟢", "MEDIUM": "🟡", "HIGH": "🟠", "CRITICAL": "🔴"}


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _print_crisis(crisis: dict, indent: str = "   "):
    icon = SEVERITY_ICONS.get(crisis["severity"], "⚪")
    print(
        f"{indent}{icon} #{crisis['id']} [{crisis['status']}] {crisis['title']} "
        f"(score {crisis['crisis_score']:.2f}, detected {crisis['detected_at']})"
    )


def run_monitor(args):
    """Run one detection pass for a workspace."""
    options = MonitorOptions.from_mapping(
        get_workspace_settings(args.workspace_id, load_monitoring_config())
    ).merged(
        min_mentions=args.min_mentions,
        current_window_minutes=args.current_window,
        baseline_window_minutes=args.baseline_window,
        sentiment_threshold=args.sentiment_threshold,
        volume_threshold_percent=args.volume_threshold,
        platforms=tuple(args.platform) if args.platform else None,
    )

    print(f"🔍 Monitoring workspace {args.workspace_id}...")
    print(f"   ⏱️  Windows: {options.current_window_minutes}m current, "
          f"{options.baseline_window_minutes}m baseline")
    print(f"   📏 Thresholds: sentiment {options.sentiment_threshold}, "
          f"volume {options.volume_threshold_percent}%")

    result = CrisisMonitor().monitor_for_crisis(args.workspace_id, options)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
        return 0

    current = result.metrics["current"]
    baseline = result.metrics["baseline"]
    print(f"   📊 Mentions: {current['count']} current, {baseline['count']} baseline")

    if result.crisis_detected:
        print(f"🚨 Crisis {result.outcome.value}:")
        _print_crisis(result.crisis.to_dict())
    else:
        print(f"✅ No crisis ({result.outcome.value})")
        if "crisis_score" in result.metrics:
            print(f"   📈 Score: {result.metrics['crisis_score']:.2f}")

    return 0


def show_dashboard(args):
    """Show the crisis dashboard for a workspace."""
    dashboard = CrisisDashboard().get_crisis_dashboard(args.workspace_id)

    if args.json:
        print(json.dumps(dashboard, indent=2, default=str))
        return 0

    stats = dashboard["statistics"]
    trends = dashboard["trends"]

    print(f"📊 Crisis Dashboard: {args.workspace_id}")
    print(f"{'='*50}")
    print(f"   Total crises: {stats['total_crises']}")
    print(f"   Active: {stats['active_crises']}   Resolved: {stats['resolved_crises']}   "
          f"Critical: {stats['critical_crises']}")
    print("   By severity: " + ", ".join(f"{k} {v}" for k, v in stats["by_severity"].items()))

    if trends["mean_time_to_acknowledge_minutes"] is not None:
        print(f"   ⏱️  Mean time to acknowledge: {trends['mean_time_to_acknowledge_minutes']} min")
    if trends["mean_time_to_resolve_minutes"] is not None:
        print(f"   ⏱️  Mean time to resolve: {trends['mean_time_to_resolve_minutes']} min")

    if dashboard["active_crises"]:
        print("\n🚨 Active crises:")
        for crisis in dashboard["active_crises"]:
            _print_crisis(crisis)
    else:
        print("\n✅ No active crises")

    return 0


def show_history(args):
    """Page through past crises of a workspace."""
    history = CrisisDashboard().get_crisis_history(
        args.workspace_id, limit=args.limit, offset=args.offset
    )

    if args.json:
        print(json.dumps(history, indent=2, default=str))
        return 0

    print(f"📜 Crisis history for {args.workspace_id} "
          f"({args.offset + 1}-{args.offset + len(history['crises'])} of {history['total']})")
    for crisis in history["crises"]:
        _print_crisis(crisis)
    if history["has_more"]:
        print(f"   ... more with --offset {args.offset + args.limit}")

    return 0


def run_transition(args):
    """Move a crisis to a new status."""
    crisis = CrisisLifecycleManager().update_crisis_status(
        args.crisis_id, args.status, args.actor, note=args.note
    )
    print(f"✅ Crisis #{crisis.id} is now {crisis.status.value}")
    return 0


def run_schedule(args):
    """Run the monitoring scheduler in the foreground."""
    scheduler = CrisisScheduler(interval_minutes=args.interval)
    if args.once:
        results = scheduler.run_monitoring_cycle()
        for workspace_id, outcome in sorted(results.items()):
            print(f"   {workspace_id}: {outcome}")
        return 0

    scheduler.start()
    return 0


def run_init_db(args):
    """Create tables or run migrations."""
    from db.init_db import create_tables, run_migrations, verify_database

    try:
        if args.migrate:
            run_migrations()
        else:
            create_tables()
        missing = verify_database()
    except Exception as e:
        print(f"❌ Database initialization failed: {e}")
        return 1

    if missing:
        print(f"❌ Missing tables: {', '.join(missing)}")
        return 1
    print("✅ Database ready")
    return 0


def run_seed(args):
    """Insert sample mentions for local experiments."""
    from db.seeds import seed_sample_mentions

    seed_sample_mentions(args.workspace_id, args.baseline_count, args.burst_count)
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Crisis Monitor - sentiment and volume crisis detection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m monitoring monitor acme --current-window 30
  python -m monitoring dashboard acme
  python -m monitoring history acme --limit 20 --offset 20
  python -m monitoring transition 42 ACKNOWLEDGED --actor alice --note "On it"
  python -m monitoring schedule --interval 5
  python -m monitoring init-db --migrate
  python -m monitoring seed demo
        """,
    )

    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Monitor command
    monitor_parser = subparsers.add_parser("monitor", help="Run one detection pass for a workspace")
    monitor_parser.add_argument("workspace_id", help="Workspace to monitor")
    monitor_parser.add_argument("--min-mentions", type=int, help="Minimum mentions before detection runs")
    monitor_parser.add_argument("--current-window", type=int, help="Current window in minutes")
    monitor_parser.add_argument("--baseline-window", type=int, help="Baseline window in minutes")
    monitor_parser.add_argument("--sentiment-threshold", type=float, help="Sentiment drop threshold (negative)")
    monitor_parser.add_argument("--volume-threshold", type=float, help="Volume increase threshold in percent")
    monitor_parser.add_argument("--platform", action="append", help="Restrict to a platform (repeatable)")
    monitor_parser.add_argument("--json", action="store_true", help="Print the full result as JSON")

    # Dashboard command
    dashboard_parser = subparsers.add_parser("dashboard", help="Show the crisis dashboard")
    dashboard_parser.add_argument("workspace_id", help="Workspace to summarize")
    dashboard_parser.add_argument("--json", action="store_true", help="Print the dashboard as JSON")

    # History command
    history_parser = subparsers.add_parser("history", help="Page through past crises")
    history_parser.add_argument("workspace_id", help="Workspace to list")
    history_parser.add_argument("--limit", type=int, default=50, help="Page size")
    history_parser.add_argument("--offset", type=int, default=0, help="Crises to skip")
    history_parser.add_argument("--json", action="store_true", help="Print the page as JSON")

    # Transition command
    transition_parser = subparsers.add_parser("transition", help="Change a crisis status")
    transition_parser.add_argument("crisis_id", type=int, help="Crisis id")
    transition_parser.add_argument("status", help="Target status, e.g. ACKNOWLEDGED")
    transition_parser.add_argument("--actor", required=True, help="Operator performing the change")
    transition_parser.add_argument("--note", help="Optional timeline note")

    # Schedule command
    schedule_parser = subparsers.add_parser("schedule", help="Poll all workspaces on an interval")
    schedule_parser.add_argument("--interval", type=int, help="Poll interval in minutes")
    schedule_parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")

    # Init-db command
    init_parser = subparsers.add_parser("init-db", help="Create or migrate the database schema")
    init_parser.add_argument("--migrate", action="store_true", help="Use Alembic migrations")

    # Seed command
    seed_parser = subparsers.add_parser("seed", help="Insert sample mentions for development")
    seed_parser.add_argument("workspace_id", nargs="?", default="demo", help="Workspace to seed")
    seed_parser.add_argument("--baseline-count", type=int, default=12, help="Mentions in the quiet hour")
    seed_parser.add_argument("--burst-count", type=int, default=60, help="Negative mentions in the last hour")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Setup logging
    setup_logging(args.verbose)

    commands = {
        "monitor": run_monitor,
        "dashboard": show_dashboard,
        "history": show_history,
        "transition": run_transition,
        "schedule": run_schedule,
        "init-db": run_init_db,
        "seed": run_seed,
    }

    try:
        return commands[args.command](args)
    except CrisisMonitorError as e:
        print(f"❌ {type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""
Crisis Monitoring Scheduler

Polls every workspace for crises on a fixed interval, one worker task per
workspace. Designed to run as a background service.
"""

import logging
import signal
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import timedelta
from typing import Any, Dict, List, Optional

import schedule

from config import (
    get_max_workers,
    get_poll_interval_minutes,
    get_workspace_settings,
    load_monitoring_config,
)

from .clock import utcnow
from .errors import CrisisMonitorError
from .monitor import CrisisMonitor
from .options import MonitorOptions
from .store import MentionStore

JOB_TAG = "crisis-monitor"


class CrisisScheduler:
    """Runs CrisisMonitor for all known workspaces at regular intervals."""

    def __init__(
        self,
        monitor: Optional[CrisisMonitor] = None,
        mention_store: Optional[MentionStore] = None,
        config: Optional[Dict[str, Any]] = None,
        interval_minutes: Optional[int] = None,
        max_workers: Optional[int] = None,
        install_signal_handlers: bool = True,
    ):
        self.mention_store = mention_store or MentionStore()
        self.monitor = monitor or CrisisMonitor(mention_store=self.mention_store)
        self.config = config if config is not None else load_monitoring_config()
        self.interval_minutes = interval_minutes or get_poll_interval_minutes()
        self.max_workers = max_workers or get_max_workers()
        self.running = False
        self.logger = logging.getLogger(__name__)
        self._cycle_lock = threading.Lock()

        # Setup signal handlers for graceful shutdown
        if install_signal_handlers:
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals gracefully."""
        self.logger.info(f"Received signal {signum}, shutting down...")
        self.running = False

    def options_for(self, workspace_id: str) -> MonitorOptions:
        """Default options from the config file merged with the workspace's overrides."""
        return MonitorOptions.from_mapping(get_workspace_settings(workspace_id, self.config))

    def workspaces_to_poll(self) -> List[str]:
        """Configured workspaces plus any workspace with mentions in the look-back span."""
        defaults = MonitorOptions.from_mapping(self.config.get("defaults"))
        look_back = defaults.current_window_minutes + defaults.baseline_window_minutes
        active = self.mention_store.list_active_workspaces(
            utcnow() - timedelta(minutes=look_back)
        )
        return sorted(set(self.config.get("workspaces", {})) | set(active))

    def run_monitoring_cycle(self) -> Dict[str, str]:
        """
        Monitor every workspace once.

        A cycle is skipped while the previous one is still running. Failures
        are logged per workspace and never stop the other workspaces.

        Returns:
            Mapping of workspace id to outcome value, or ``error`` when it failed
        """
        if not self._cycle_lock.acquire(blocking=False):
            self.logger.warning("⏭️  Previous monitoring cycle still running, skipping")
            return {}

        results: Dict[str, str] = {}
        try:
            self.logger.info("🕐 Starting scheduled crisis monitoring run...")
            workspaces = self.workspaces_to_poll()

            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {
                    executor.submit(self._monitor_workspace, workspace_id): workspace_id
                    for workspace_id in workspaces
                }
                for future in as_completed(futures):
                    workspace_id = futures[future]
                    results[workspace_id] = future.result()

            created = sum(1 for outcome in results.values() if outcome == "created")
            self.logger.info(
                f"✅ Monitoring run completed: {len(results)} workspaces, {created} new crises"
            )

        except Exception as e:
            self.logger.error(f"💥 Scheduled monitoring run failed: {e}")
        finally:
            self._cycle_lock.release()

        return results

    def _monitor_workspace(self, workspace_id: str) -> str:
        try:
            result = self.monitor.monitor_for_crisis(workspace_id, self.options_for(workspace_id))
            return result.outcome.value
        except CrisisMonitorError as e:
            self.logger.error(f"❌ Monitoring failed for workspace {workspace_id}: {e}")
            return "error"
        except Exception as e:
            self.logger.error(f"💥 Unexpected error monitoring workspace {workspace_id}: {e}")
            return "error"

    def start(self):
        """Start the scheduler service."""
        self.logger.info("🚀 Starting Crisis Monitoring Scheduler...")

        schedule.every(self.interval_minutes).minutes.do(self.run_monitoring_cycle).tag(JOB_TAG)

        self.running = True
        self.logger.info("📅 Scheduled jobs:")
        for job in schedule.get_jobs(JOB_TAG):
            self.logger.info(f"   {job}")

        try:
            while self.running:
                schedule.run_pending()
                time.sleep(1)

        except KeyboardInterrupt:
            self.logger.info("⏹️  Scheduler stopped by user")
        finally:
            schedule.clear(JOB_TAG)
            self.logger.info("👋 Crisis Monitoring Scheduler stopped")

    def stop(self):
        """Stop the scheduler service."""
        self.running = False
        self.logger.info("🛑 Stopping scheduler...")


def main():
    """Main entry point for the scheduler service."""
    # Setup logging
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler("crisis_scheduler.log"),
        ],
    )

    logger = logging.getLogger(__name__)

    try:
        logger.info("🌟 Crisis Monitoring Scheduler starting...")
        scheduler = CrisisScheduler()
        scheduler.start()
    except Exception as e:
        logger.error(f"💥 Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

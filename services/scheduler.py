import logging
import threading

import schedule

logger = logging.getLogger(__name__)


class MonitoringScheduler:
    """
    Drives WifiMonitor.run_cycle at a fixed interval on a daemon thread.
    A tick that fires while a cycle is still running is skipped.
    """

    def __init__(self, app, monitor, interval: int = 5):
        self.app = app
        self.monitor = monitor
        self.interval = interval
        self.scheduler = schedule.Scheduler()
        self.is_running = False
        self.scheduler_thread = None
        self.skipped_ticks = 0
        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()

    def start_scheduled_monitoring(self):
        """Start the sampling loop and trigger an immediate first cycle"""
        self.scheduler.every(self.interval).seconds.do(self.run_monitoring_task)

        self.is_running = True
        self._stop_event.clear()
        self.scheduler_thread = threading.Thread(target=self.run_scheduler, name='wifi-scheduler')
        self.scheduler_thread.daemon = True
        self.scheduler_thread.start()

        # First sample right away so the dashboard has data
        threading.Thread(target=self.run_monitoring_task, daemon=True).start()

        logger.info("Scheduled monitoring started (interval %ss)", self.interval)

    def stop_scheduled_monitoring(self):
        """Stop the loop; an in-flight cycle is abandoned"""
        self.is_running = False
        self._stop_event.set()
        self.scheduler.clear()
        if self.scheduler_thread:
            self.scheduler_thread.join(timeout=5)
        logger.info("Scheduled monitoring stopped.")

    def run_scheduler(self):
        """Run the scheduler loop"""
        while self.is_running:
            self.scheduler.run_pending()
            self._stop_event.wait(0.5)

    def run_monitoring_task(self):
        """Run one cycle within the application context, unless one is in flight"""
        if not self._cycle_lock.acquire(blocking=False):
            self.skipped_ticks += 1
            logger.warning("Previous monitoring cycle still running, skipping tick")
            return False

        try:
            with self.app.app_context():
                self.monitor.run_cycle()
        except Exception:
            logger.exception("Error in scheduled monitoring")
        finally:
            self._cycle_lock.release()
        return True

"""
CalcNote Performance Monitoring - debug console output and timing log.
"""

import time

from . import constants


class PerformanceMonitoringMixin:
    """Handles performance measurements and debug output for recompute passes"""

    def _init_perf(self, debug_enabled=None):
        self._debug_enabled = constants.DEBUG if debug_enabled is None else debug_enabled
        self._perf_log = []

    def _debug(self, message):
        """Print a diagnostic line when debugging is enabled"""
        if getattr(self, '_debug_enabled', False):
            print(f"DEBUG: {message}")

    def _log_perf(self, method_name, start_time=None):
        """Log performance measurements"""
        if not getattr(self, '_debug_enabled', False):
            return None

        current_time = time.time() * 1000
        if start_time is None:
            # Starting measurement
            return current_time

        # Ending measurement
        duration = current_time - start_time
        if duration > constants.PERF_LOG_THRESHOLD_MS:
            log_entry = f"[{current_time:.0f}] {method_name}: {duration:.1f}ms"
            self._perf_log.append(log_entry)
            print(log_entry)  # Real-time console output

            # Keep only the most recent entries
            if len(self._perf_log) > constants.PERF_LOG_MAX_ENTRIES:
                self._perf_log = self._perf_log[-constants.PERF_LOG_MAX_ENTRIES:]
        return duration

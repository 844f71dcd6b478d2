# ABOUTME: Periodic weather refresh loop used for live updates
# ABOUTME: Ticks run back to back on one thread and stop cooperatively via an Event

import threading
import time
from collections.abc import Callable

from weather_models import AggregateFetchError, WeatherReport


DEFAULT_INTERVAL = 300


class LiveModeScheduler:
    """Re-run a weather fetch every ``interval`` seconds until stopped.

    The interval is measured from the start of one tick to the start of the
    next. A tick that overruns delays the next one instead of overlapping it.
    Total fetch failures are handed to ``on_error`` and the loop carries on.
    """

    def __init__(
        self,
        fetch: Callable[[], WeatherReport],
        on_report: Callable[[WeatherReport], None],
        on_error: Callable[[AggregateFetchError], None] | None = None,
        interval: float = DEFAULT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        verbose: int = 0,
    ):
        self.fetch = fetch
        self.on_report = on_report
        self.on_error = on_error
        self.interval = interval if interval > 0 else DEFAULT_INTERVAL
        self.clock = clock
        self.verbose = verbose
        self.ticks = 0
        self._stop = threading.Event()
        self._tick_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and not self._stop.is_set()
        )

    def tick(self) -> WeatherReport | None:
        """Run one fetch and deliver its outcome"""
        with self._tick_lock:
            self.ticks += 1
            try:
                report = self.fetch()
            except AggregateFetchError as e:
                if self.verbose >= 1:
                    print(f'❌ Live update failed: {e}')
                if self.on_error is not None:
                    self.on_error(e)
                return None
            except Exception as e:  # noqa: BLE001
                # A bug in one refresh must not kill the live thread
                print(f'❌ Live update crashed: {e.__class__.__name__}: {e}')
                return None

            if self.verbose >= 2:  # noqa: PLR2004
                print(f'🔄 Live update delivered from {report.provider.value}')
            self.on_report(report)
            return report

    def run(self) -> None:
        """Tick immediately, then once per interval until stop() is called"""
        while not self._stop.is_set():
            started = self.clock()
            self.tick()
            remaining = self.interval - (self.clock() - started)
            if self._stop.wait(max(0.0, remaining)):
                break

    def start(self) -> threading.Thread:
        """Run the loop on a daemon thread; a running loop is reused"""
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name='live-mode', daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, wait: bool = False, timeout: float | None = None) -> None:
        """Ask the loop to exit after the current tick; never interrupts a fetch"""
        self._stop.set()
        thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

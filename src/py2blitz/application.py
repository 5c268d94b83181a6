"""
Application Layer - Headless Strike Monitor

This module wires the stream client together for console use:

    StreamSettings
        ↓
    ConnectionManager (worker thread)
        ↓
    StrikeMonitor (decode, parse, bounded history)
        ↓
    BlitzApplication (tick loop, prints one line per strike)
"""

import logging
import sys
import time
from typing import Optional, TextIO

from py2blitz.models.connection import ConnectionState, ConnectionStatus
from py2blitz.models.settings import StreamSettings
from py2blitz.models.strike import Strike
from py2blitz.services.strike_monitor import StrikeMonitor


class BlitzApplication:
    """Console application printing live strikes.

    Example:
        app = BlitzApplication(StreamSettings(server_index=1), duration=60)
        sys.exit(app.run())
    """

    def __init__(
        self,
        settings: Optional[StreamSettings] = None,
        url: Optional[str] = None,
        duration: Optional[float] = None,
        tick_interval: float = 0.1,
        output: Optional[TextIO] = None,
        monitor: Optional[StrikeMonitor] = None
    ):
        """Initialize the application.

        Args:
            settings: Stream settings (defaults if None)
            url: Server URL overriding the configured server
            duration: Seconds to run, None = until interrupted or disconnected
            tick_interval: Seconds between event-channel drains
            output: Where strike lines are written (stdout if None)
            monitor: Pre-built monitor (tests)
        """
        self.settings = settings or StreamSettings()
        self.url = url
        self.duration = duration
        self.tick_interval = tick_interval
        self.output = output or sys.stdout
        self.monitor = monitor or StrikeMonitor(self.settings)
        self.logger = logging.getLogger(__name__)
        self._strike_count = 0
        self._was_connected = False

    def _print_strike(self, strike: Strike) -> None:
        self._strike_count += 1
        self.output.write(f"{strike.summary()}\n")
        self.output.flush()

    def _on_status_changed(self, status: ConnectionStatus) -> None:
        if status.state is ConnectionState.CONNECTED:
            self._was_connected = True
        elif status.state is ConnectionState.ERROR:
            self.output.write(f"Connection failed: {status.last_error}\n")
            self.output.flush()

    def run(self) -> int:
        """Run until the duration expires, the connection ends, or Ctrl+C.

        Returns:
            Exit code: 0 on a clean run, 1 if the connection failed
        """
        self.monitor.add_strike_observer(self._print_strike)
        self.monitor.connection_model.add_observer(self._on_status_changed)
        self.monitor.start(self.url)

        deadline = None if self.duration is None else time.monotonic() + self.duration

        try:
            while deadline is None or time.monotonic() < deadline:
                self.monitor.process_pending()
                state = self.monitor.status.state

                if state is ConnectionState.ERROR:
                    return 1
                if self._was_connected and state is ConnectionState.DISCONNECTED:
                    self.logger.info("Server closed the connection")
                    break

                time.sleep(self.tick_interval)

        except KeyboardInterrupt:
            self.logger.info("Interrupted, shutting down")

        finally:
            self.shutdown()

        return 0

    def shutdown(self) -> None:
        """Disconnect and stop the worker thread."""
        self.monitor.stop()
        self.monitor.close()
        self.logger.info(f"Received {self._strike_count} strikes")

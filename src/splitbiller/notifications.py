"""Background polling for new group invitations."""

import logging
import threading
from collections.abc import Callable

from .exceptions import APIError, NotLoggedInError, SessionExpiredError
from .models import Invitation

logger = logging.getLogger(__name__)


class InvitationPoller:
    """
    Cancellable task that refetches invitations at a fixed interval.

    Invitations are reported through on_new only the first time they are
    seen. Polling stops on its own when the session expires; any other error
    is logged and polling resumes at the next tick.

    Usage:
        with InvitationPoller(fetch, on_new, interval=30):
            ...  # polling runs in the background
    """

    def __init__(
        self,
        fetch: Callable[[], list[Invitation]],
        on_new: Callable[[list[Invitation]], None],
        interval: float = 30.0,
    ):
        if interval <= 0:
            raise ValueError("Polling interval must be positive")

        self.fetch = fetch
        self.on_new = on_new
        self.interval = interval

        self._seen: set[str] = set()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start polling in a daemon thread (no-op if already running)."""
        if self.running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="invitation-poller", daemon=True
        )
        self._thread.start()
        logger.info(f"Polling invitations every {self.interval:g}s")

    def stop(self, timeout: float | None = None):
        """Stop polling and wait for the worker thread to finish."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def wait(self, timeout: float | None = None) -> bool:
        """Block until polling stops. Returns True if it stopped."""
        return self._stop_event.wait(timeout)

    def __enter__(self):
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.stop()

    def poll_once(self) -> list[Invitation]:
        """
        Fetch invitations once and report the unseen ones.

        Returns:
            Invitations seen for the first time in this poll
        """
        invitations = self.fetch()
        new = [inv for inv in invitations if inv.id not in self._seen]
        self._seen.update(inv.id for inv in new)

        if new:
            logger.info(f"{len(new)} new invitation(s)")
            self.on_new(new)
        return new

    def _run(self):
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except (SessionExpiredError, NotLoggedInError):
                logger.warning("Session expired, stopping invitation polling")
                self._stop_event.set()
                break
            except APIError as e:
                logger.warning(f"Invitation poll failed: {e}")
            except Exception:
                logger.exception("Unexpected error while polling invitations")

            self._stop_event.wait(self.interval)

"""Building blocks shared by the screen controllers."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterator

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from shipdesk.errors import ProcessingBusy
from shipdesk.services import status_bus


logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 200


def truncate_message(message: Any, limit: int = MAX_MESSAGE_LENGTH) -> str:
    text = str(message)
    if len(text) > limit:
        return f"{text[:limit]}..."
    return text


class RecoveryChoice:
    RESET = "reset"
    RESTART = "restart"

    ALL_CHOICES = [RESET, RESTART]


class ConsecutiveErrorTracker:
    """Counts failures in a row and raises one recovery prompt at the threshold.

    Further failures while the prompt is open do not raise another one. A
    success resets the count; only :meth:`resolve` closes the prompt.
    """

    def __init__(self, threshold: int = 3) -> None:
        self.threshold = threshold
        self.count = 0
        self.prompt_open = False
        self.prompts_raised = 0
        self._lock = threading.Lock()

    def record_failure(self) -> bool:
        """Count a failure; ``True`` when this one opened the prompt."""

        with self._lock:
            self.count += 1
            if self.count >= self.threshold and not self.prompt_open:
                self.prompt_open = True
                self.prompts_raised += 1
                return True
            return False

    def record_success(self) -> None:
        with self._lock:
            self.count = 0

    def resolve(self) -> None:
        with self._lock:
            self.count = 0
            self.prompt_open = False


class ProcessingGuard:
    """The ``is_processing`` flag of a screen.

    Only one mutation may hold the guard at a time; a second submission
    raises :class:`ProcessingBusy` instead of queueing.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active = False
        self.operation: str | None = None
        self.started_at: datetime | None = None

    @property
    def is_processing(self) -> bool:
        return self._active

    @contextmanager
    def hold(self, operation: str) -> Iterator[None]:
        with self._lock:
            if self._active:
                raise ProcessingBusy(
                    f"Please wait for '{self.operation}' to finish before trying again."
                )
            self._active = True
            self.operation = operation
            self.started_at = datetime.utcnow()
        try:
            yield
        finally:
            self.reset()

    def reset(self) -> None:
        with self._lock:
            self._active = False
            self.operation = None
            self.started_at = None


class Debouncer:
    """Run ``callback`` once input has been quiet for ``delay`` seconds.

    Each :meth:`submit` replaces the pending one-shot job, so a burst of
    inputs ends in a single call with the last arguments.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[..., Any],
        *,
        scheduler: BackgroundScheduler | None = None,
        job_id: str = "debounce",
    ) -> None:
        self.delay = delay
        self.callback = callback
        self.job_id = job_id
        self._scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self._lock = threading.Lock()
        self._pending_args: tuple[Any, ...] | None = None

    @property
    def pending(self) -> bool:
        return self._pending_args is not None

    def submit(self, *args: Any) -> None:
        with self._lock:
            self._pending_args = args
            if not self._scheduler.running:
                self._scheduler.start()
            self._scheduler.add_job(
                self._fire,
                trigger="date",
                run_date=datetime.now(timezone.utc) + timedelta(seconds=self.delay),
                id=self.job_id,
                replace_existing=True,
                misfire_grace_time=None,
            )

    def _take_pending(self) -> tuple[Any, ...] | None:
        with self._lock:
            args = self._pending_args
            self._pending_args = None
            if args is not None:
                try:
                    self._scheduler.remove_job(self.job_id)
                except JobLookupError:
                    # already handed to the executor
                    logger.debug("Debounce job %s already fired", self.job_id)
            return args

    def _fire(self) -> None:
        args = self._take_pending()
        if args is not None:
            self.callback(*args)

    def flush(self) -> bool:
        """Run the pending call now; ``False`` when nothing was pending."""

        args = self._take_pending()
        if args is None:
            return False
        self.callback(*args)
        return True

    def cancel(self) -> None:
        self._take_pending()


class ScreenController:
    """State and notice plumbing common to every screen."""

    source = "screen"

    def __init__(self, *, max_consecutive_errors: int = 3) -> None:
        self.errors = ConsecutiveErrorTracker(max_consecutive_errors)
        self.guard = ProcessingGuard()
        self.is_loading = False

    @property
    def is_processing(self) -> bool:
        return self.guard.is_processing

    def notify_success(self, message: str) -> dict[str, Any]:
        return status_bus.log_event("success", message, source=self.source)

    def notify_info(self, message: str) -> dict[str, Any]:
        return status_bus.log_event("info", message, source=self.source)

    def notify_warning(self, message: str) -> dict[str, Any]:
        return status_bus.log_event("warning", message, source=self.source)

    def notify_error(
        self, title: str, error: Any, *, blocking: bool = False
    ) -> dict[str, Any]:
        message = f"{title}: {truncate_message(error)}"
        return status_bus.log_event(
            "error",
            message,
            source=self.source,
            blocking=blocking,
            dedupe_key=f"{self.source}:{title}",
        )

    def notify_invalid(self, title: str, error: Any) -> dict[str, Any]:
        """Red banner for rejected user input; logged at INFO, never counted."""

        message = f"{title}: {truncate_message(error)}"
        return status_bus.log_event(
            "error", message, source=self.source, log_level=logging.INFO
        )

    def handle_failure(self, title: str, error: Any, *, blocking: bool = False) -> bool:
        """Report a failed operation and count it.

        Returns ``True`` when this failure opened the recovery prompt.
        """

        self.notify_error(title, error, blocking=blocking)
        self.is_loading = False
        if not self.errors.record_failure():
            return False
        status_bus.log_event(
            "error",
            "Multiple Errors Detected: several operations failed in a row. "
            "Reset the screen or restart to reload data.",
            source=self.source,
            blocking=True,
            context={"choices": list(RecoveryChoice.ALL_CHOICES)},
        )
        logger.warning("%s raised the recovery prompt after %s failures", self.source, self.errors.count)
        return True

    def notices(self, limit: int = 20) -> list[dict[str, Any]]:
        return [
            status_bus.serialize_event(event)
            for event in status_bus.get_recent_events(limit, source=self.source)
        ]

    def screen_state(self) -> dict[str, Any]:
        return {
            "is_loading": self.is_loading,
            "is_processing": self.is_processing,
            "consecutive_errors": self.errors.count,
            "recovery_prompt": self.errors.prompt_open,
        }

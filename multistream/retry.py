import logging
from typing import Callable, Optional

from PySide6.QtCore import QTimer

Scheduler = Callable[[int, Callable[[], None]], None]

FRAME_MS = 16


def qt_scheduler(delay_ms: int, callback: Callable[[], None]) -> None:
    QTimer.singleShot(int(delay_ms), callback)


class BoundedRetry:
    """Run a callback now and then up to ``max_attempts - 1`` more times.

    Every ``start`` bumps the generation; ticks scheduled by an older
    generation see the mismatch and stop, so a newer trigger supersedes a
    burst that is still running. ``cancel`` does the same without starting.
    """

    def __init__(
        self,
        interval_ms: int,
        max_attempts: int,
        scheduler: Optional[Scheduler] = None,
        name: str = "retry",
    ):
        self.interval_ms = max(0, int(interval_ms))
        self.max_attempts = max(1, int(max_attempts))
        self.name = name
        self._scheduler = scheduler or qt_scheduler
        self.generation = 0

    def start(self, callback: Callable[[], None]) -> int:
        self.generation += 1
        generation = self.generation
        self._run(callback, generation, 1)
        return generation

    def cancel(self) -> None:
        self.generation += 1

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def _run(self, callback, generation: int, attempt: int) -> None:
        if generation != self.generation:
            logging.debug("%s: generation %d superseded at attempt %d", self.name, generation, attempt)
            return
        callback()
        if attempt >= self.max_attempts:
            return
        self._scheduler(
            self.interval_ms,
            lambda: self._run(callback, generation, attempt + 1),
        )

import contextlib
import logging
import sys
import threading
import time
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class CancelledError(Exception):
    """Операция отменена пользователем."""


@runtime_checkable
class CancelToken(Protocol):
    def is_cancelled(self) -> bool: ...


class EventCancelToken:
    """Кооперативная отмена поверх threading.Event (флаг проверяется между шагами)."""

    def __init__(self, event: threading.Event | None = None) -> None:
        self._event = event or threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()


def check_cancelled(token: CancelToken | None) -> None:
    """Бросает CancelledError, если токен отмены выставлен."""
    if token is not None and token.is_cancelled():
        msg = 'Операция отменена пользователем'
        raise CancelledError(msg)


@runtime_checkable
class ProgressSink(Protocol):
    """Односторонний канал уведомлений оркестратор -> UI."""

    def on_progress(self, done: int, total: int, label: str) -> None: ...

    def on_info(self, message: str) -> None: ...

    def on_warning(self, message: str) -> None: ...


class LoggingSink:
    """Sink по умолчанию: всё уходит в лог."""

    def on_progress(self, done: int, total: int, label: str) -> None:
        logger.info('%s: %d/%d', label, done, total)

    def on_info(self, message: str) -> None:
        logger.info(message)

    def on_warning(self, message: str) -> None:
        logger.warning(message)


def notify(sink: ProgressSink | None, method: str, *args: object) -> None:
    """Вызывает метод sink, не давая его исключениям влиять на загрузку."""
    if sink is None:
        return
    cb = getattr(sink, method, None)
    if cb is None:
        return
    try:
        cb(*args)
    except Exception as e:
        logger.debug('Progress sink %s failed: %s', method, e)


class SingleLineRenderer:
    """Потокобезопасный рендерер для вывода в одну строку."""

    def __init__(self, *, single_line: bool = True, stream=None) -> None:
        self.single_line = single_line
        self._stream = stream
        self._last_len = 0
        self._lock = threading.Lock()

    @property
    def stream(self):
        return self._stream or sys.stdout

    def clear_line(self) -> None:
        """Полностью очистить текущую строку прогресса."""
        with self._lock:
            if self.single_line and self._last_len > 0:
                self.stream.write('\r' + ' ' * self._last_len + '\r')
                self.stream.flush()
                self._last_len = 0

    def write_line(self, msg: str) -> None:
        """Перерисовать текущую строку прогресса."""
        with self._lock:
            if self.single_line:
                pad = max(0, self._last_len - len(msg))
                self.stream.write('\r' + msg + (' ' * pad))
            else:
                self.stream.write(msg + '\n')
            self.stream.flush()
            self._last_len = len(msg)


class ConsoleProgress:
    """Прогресс-бар для пошаговых операций."""

    def __init__(
        self,
        total: int,
        label: str = 'Прогресс',
        writer: SingleLineRenderer | None = None,
    ) -> None:
        self.total = max(1, int(total))
        self.done = 0
        self.start = time.monotonic()
        self.label = label
        self._writer = writer or SingleLineRenderer()
        self._writer.clear_line()
        self._render()  # показать 0%

    def _format_eta(self, remaining: float) -> str:
        if remaining is None or remaining == float('inf'):
            return '--:--'
        m, s = divmod(int(remaining), 60)
        h, m = divmod(m, 60)
        if h > 0:
            return f'{h:02d}:{m:02d}:{s:02d}'
        return f'{m:02d}:{s:02d}'

    def _render(self) -> None:
        elapsed = max(1e-6, time.monotonic() - self.start)
        rps = self.done / elapsed
        remaining = (self.total - self.done) / rps if rps > 0 else float('inf')
        bar_len = 30
        filled = int(bar_len * self.done / self.total)
        bar = '█' * filled + '░' * (bar_len - filled)
        msg = (
            f'{self.label}: [{bar}] {self.done}/{self.total} | {rps:4.1f}/s | ETA'
            f' {self._format_eta(remaining)}'
        )
        self._writer.write_line(msg)

    def update(self, done: int) -> None:
        self.done = max(0, min(self.total, int(done)))
        self._render()

    def close(self) -> None:
        self._writer.stream.write('\n')
        self._writer.stream.flush()


class ConsoleSink:
    """Sink для CLI: прогресс-бар в одну строку, сообщения идут в лог."""

    def __init__(self, writer: SingleLineRenderer | None = None) -> None:
        self._writer = writer
        self._bar: ConsoleProgress | None = None

    def on_progress(self, done: int, total: int, label: str) -> None:
        if self._bar is None or self._bar.total != max(1, total):
            self._bar = ConsoleProgress(total=total, label=label, writer=self._writer)
        self._bar.update(done)
        if done >= total:
            with contextlib.suppress(OSError):
                self._bar.close()
            self._bar = None

    def on_info(self, message: str) -> None:
        logger.info(message)

    def on_warning(self, message: str) -> None:
        logger.warning(message)

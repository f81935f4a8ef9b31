import asyncio
import logging
from typing import Any, Awaitable, Callable

from ..config import TYPING_IDLE_SECONDS

logger = logging.getLogger(__name__)


class TypingNotifier:
    """Debounced typing signal for one conversation.

    The first keystroke sends ``isTyping=True``; the indicator is cleared after
    ``idle_seconds`` without keystrokes, or immediately on blur/send.
    """

    def __init__(self, send: Callable[[bool], Awaitable[Any]], idle_seconds: float = TYPING_IDLE_SECONDS):
        self._send = send
        self._idle_seconds = idle_seconds
        self._typing = False
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_typing(self) -> bool:
        return self._typing

    def keystroke(self) -> None:
        if not self._typing:
            self._typing = True
            self._signal(True)
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(self._idle_seconds, self.stop)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._typing:
            self._typing = False
            self._signal(False)

    async def aclose(self) -> None:
        self.stop()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _signal(self, is_typing: bool) -> None:
        task = asyncio.ensure_future(self._deliver(is_typing))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, is_typing: bool) -> None:
        try:
            await self._send(is_typing)
        except Exception as exc:
            # Typing is best effort; the next keystroke or send corrects it.
            logger.warning(f"[typing] signal isTyping={is_typing} not delivered: {exc}")

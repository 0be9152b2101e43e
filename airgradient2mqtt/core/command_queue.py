"""Per-device outbound command queues.

Commands arrive over MQTT at any time but can only be handed to a sensor when
it polls the emulated cloud. Each device gets a small bounded FIFO; when a
device stops polling, the oldest commands are evicted so the most recent
intent survives.

Queues are kept in memory only and live for the lifetime of the process.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque, Dict, List, Optional

from ..constants import COMMAND_QUEUE_MAX_LEN

LOGGER = logging.getLogger(__name__)


class CommandQueue:
    """Bounded FIFO of command strings for a single device."""

    MAX_LEN = COMMAND_QUEUE_MAX_LEN

    def __init__(self, max_len: int = MAX_LEN) -> None:
        # deque(maxlen=...) drops exactly one item from the head per append
        # once full, and append/popleft are atomic.
        self._commands: Deque[str] = deque(maxlen=max_len)

    @property
    def max_len(self) -> int:
        return self._commands.maxlen or self.MAX_LEN

    def enqueue(self, command: str) -> None:
        if len(self._commands) == self.max_len:
            LOGGER.debug(
                "Command queue full (%d); evicting %s", self.max_len, self._commands[0]
            )
        self._commands.append(command)

    def dequeue(self) -> Optional[str]:
        """Return the oldest pending command, or ``None`` when nothing is queued."""
        try:
            return self._commands.popleft()
        except IndexError:
            return None

    def snapshot(self) -> List[str]:
        return list(self._commands)

    def __len__(self) -> int:
        return len(self._commands)


class CommandQueueManager:
    """Registry of command queues keyed by device id.

    Queues are created on first reference and never removed. The get-or-create
    path is guarded so concurrent callers for the same id share one queue.
    """

    def __init__(self, *, max_len: int = CommandQueue.MAX_LEN) -> None:
        self._max_len = max_len
        self._queues: Dict[str, CommandQueue] = {}
        self._lock = threading.Lock()

    def queue_for(self, device_id: str) -> CommandQueue:
        queue = self._queues.get(device_id)
        if queue is not None:
            return queue

        with self._lock:
            queue = self._queues.get(device_id)
            if queue is None:
                queue = CommandQueue(self._max_len)
                self._queues[device_id] = queue
                LOGGER.debug("Created command queue for %s", device_id)
        return queue

    def pending_counts(self) -> Dict[str, int]:
        with self._lock:
            items = list(self._queues.items())
        return {device_id: len(queue) for device_id, queue in items}

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._queues

    def __len__(self) -> int:
        return len(self._queues)

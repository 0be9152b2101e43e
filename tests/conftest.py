import pytest

from airgradient2mqtt.core import CommandQueueManager
from airgradient2mqtt.translator import BridgeTranslator


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def queue_manager() -> CommandQueueManager:
    return CommandQueueManager()


@pytest.fixture
def translator(queue_manager: CommandQueueManager, clock: FakeClock) -> BridgeTranslator:
    return BridgeTranslator(queue_manager, clock=clock)

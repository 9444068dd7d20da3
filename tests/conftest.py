# tests/conftest.py
import logging
import os
from typing import Any, List

import pytest

from eventdispatch.core import log
from eventdispatch.core import metrics
from eventdispatch.core.contracts import Event, EventHandler
from eventdispatch.core.dispatcher import EventDispatcher


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_logging_and_metrics():
    # LOG_LEVEL / LOG_JSON / .env are honoured here
    log.setup()

    interval = float(os.getenv("METRICS_INTERVAL_TEST", "1.0"))
    json_mode = (os.getenv("LOG_JSON", "0") == "1")
    metrics.start_exporter(interval_sec=interval, json_mode=json_mode,
                           logger=logging.getLogger("metrics"))
    yield
    metrics.stop_exporter()


@pytest.fixture(autouse=True)
def _fresh_metrics():
    metrics.reset()
    yield


class RecordingHandler(EventHandler):
    """Appends (id, event) to a shared journal so tests can check call order."""

    def __init__(self, hid: int, journal: List[Any]):
        self.id = hid
        self.journal = journal

    def handle(self, event):
        self.journal.append((self.id, event))


@pytest.fixture
def journal() -> List[Any]:
    return []


@pytest.fixture
def dispatcher() -> EventDispatcher:
    return EventDispatcher()


@pytest.fixture
def h1(journal):
    return RecordingHandler(1, journal)


@pytest.fixture
def h2(journal):
    return RecordingHandler(2, journal)


@pytest.fixture
def h3(journal):
    return RecordingHandler(3, journal)


@pytest.fixture
def event1() -> Event:
    return Event("test1", "test1")


@pytest.fixture
def event2() -> Event:
    return Event("test2", "test2")

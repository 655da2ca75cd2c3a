"""
Test configuration and shared fixtures.

Document fetching is always injected: no test touches the network.
"""

import copy
import json
import os
import sys
from concurrent.futures import Executor, Future

import pytest

# Ensure repo root is on sys.path
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from composer.core import GlobalCfg
from composer.engine.catalog import load_default_catalog
from composer.engine.dispatch import load_default_registry
from composer.engine.documents import AnimationDocumentCache
from composer.engine.timeline import Timeline

LOGO_DATA_URI = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8z8BQDwAEhQGAhKmMIQAAAABJRU5ErkJggg=="
)

SAMPLE_DOCUMENT = {
    "fr": 30,
    "w": 200,
    "h": 100,
    "ip": 0,
    "op": 300,
    "assets": [{"id": "img_1", "w": 10, "h": 10, "u": "", "p": "logo.png", "e": 0}],
    "layers": [
        {
            "ty": 2,
            "nm": "CustomerLogo",
            "refId": "img_1",
            "ip": 0,
            "op": 300,
            "ks": {
                "o": {"a": 0, "k": 100},
                "p": {"a": 0, "k": [50, 50, 0]},
                "s": {"a": 0, "k": [50, 50, 100]},
            },
        },
        {
            "ty": 4,
            "nm": "CustomerBg",
            "ip": 0,
            "op": 300,
            "ks": {"o": {"a": 0, "k": 100}},
            "shapes": [
                {
                    "ty": "gr",
                    "it": [
                        {"ty": "rc", "p": {"a": 0, "k": [100, 50]}, "s": {"a": 0, "k": [200, 100]}},
                        {"ty": "fl", "c": {"a": 0, "k": [0, 0, 0, 1]}, "o": {"a": 0, "k": 100}},
                    ],
                }
            ],
        },
    ],
}


class ImmediateExecutor(Executor):
    """Runs submitted work synchronously and returns an already-resolved future."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class DeferredExecutor(Executor):
    """Holds submitted work until run_all() is called."""

    def __init__(self):
        self.queue = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.queue.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        while self.queue:
            future, fn, args, kwargs = self.queue.pop(0)
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)


@pytest.fixture(scope="session")
def catalog():
    return load_default_catalog()


@pytest.fixture(scope="session")
def registry():
    return load_default_registry()


@pytest.fixture
def cfg():
    return GlobalCfg()


@pytest.fixture
def timeline(catalog):
    return Timeline(catalog)


@pytest.fixture
def sample_document():
    return copy.deepcopy(SAMPLE_DOCUMENT)


@pytest.fixture
def logo_uri():
    return LOGO_DATA_URI


@pytest.fixture
def immediate_executor():
    return ImmediateExecutor()


@pytest.fixture
def deferred_executor():
    return DeferredExecutor()


@pytest.fixture
def document_cache(immediate_executor, sample_document):
    """Cache whose fetcher serves the sample document for any source."""
    calls = []

    def fetcher(source):
        calls.append(source)
        return json.dumps(sample_document)

    cache = AnimationDocumentCache(fetcher=fetcher, executor=immediate_executor)
    cache.calls = calls
    return cache

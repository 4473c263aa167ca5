import pytest

import metrics_registry.registry as registry_module
from metrics_registry.registry import Registry


@pytest.fixture
def registry():
    """Fresh, isolated registry (never the process-wide one)."""
    return Registry()


@pytest.fixture
def fresh_default(monkeypatch):
    """Reset the process-wide registry so the next call re-initializes it."""
    monkeypatch.setattr(registry_module, "_default_registry", None)
    monkeypatch.setenv("METRICS_PROCESS_COLLECTOR", "false")
    yield
    registry_module._default_registry = None

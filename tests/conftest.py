from __future__ import annotations

import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration made by a CLI invocation."""
    yield
    structlog.reset_defaults()

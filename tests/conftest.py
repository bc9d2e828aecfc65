"""
Shared test configuration.
"""

import pytest
import structlog


@pytest.fixture(autouse=True, scope="session")
def stdlib_structlog():
    """Route structlog through stdlib logging so stdout only carries command output."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )
    yield
    structlog.reset_defaults()

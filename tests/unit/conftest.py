from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

FIXED_NOW = datetime(2024, 3, 1, 10, 7, 30)


@pytest.fixture
def mock_uow():
    uow = MagicMock()
    uow.__aenter__ = AsyncMock(return_value=uow)
    uow.__aexit__ = AsyncMock(return_value=False)  # Must return False to not suppress exceptions
    uow.commit = AsyncMock()
    uow.rollback = AsyncMock()
    return uow


@pytest.fixture
def uow_factory(mock_uow):
    return lambda: mock_uow


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def mock_audit_logger():
    audit_logger = MagicMock()
    audit_logger.log = AsyncMock()
    audit_logger.log_admin_action = AsyncMock()
    audit_logger.log_security_event = AsyncMock()
    return audit_logger

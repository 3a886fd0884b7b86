import pytest
from unittest.mock import MagicMock

from credsync.security import ThreadLocalSecurityContext
from credsync.stores.memory import Memory


@pytest.fixture
def kube_client():
    """Fixture for a mock Kubernetes CoreV1Api client."""
    return MagicMock()


@pytest.fixture
def custom_api():
    """Fixture for a mock Kubernetes CustomObjectsApi client."""
    return MagicMock()


@pytest.fixture
def cluster():
    """Fixture for a mock ClusterClient."""
    return MagicMock()


@pytest.fixture
def memory_store():
    """Fixture for an empty in-memory credential store."""
    return Memory()


@pytest.fixture
def security():
    return ThreadLocalSecurityContext()

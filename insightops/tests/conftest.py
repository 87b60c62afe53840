import pytest

from insightops.common.document_store import InMemoryDocumentStore

from insightops.tests.helpers import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryDocumentStore()

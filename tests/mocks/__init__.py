"""Mock implementations for testing."""

from tests.mocks.opportunities import make_opportunity
from tests.mocks.scanner import FakeResponse, MockScannerClient
from tests.mocks.stream import MockPriceStream, RecordingSend


__all__ = [
    "FakeResponse",
    "MockPriceStream",
    "MockScannerClient",
    "RecordingSend",
    "make_opportunity",
]

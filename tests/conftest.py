"""
Pytest configuration and shared fixtures.

Provides reusable test fixtures for all test modules.
"""

import random

import pytest

from arbscanner.config.settings import Settings
from arbscanner.core.event_bus import EventBus
from arbscanner.core.types import Opportunity
from arbscanner.execution.ledger import Ledger
from arbscanner.simulation.generator import OpportunityGenerator
from arbscanner.simulation.price_model import PriceModel
from tests.mocks.opportunities import make_opportunity
from tests.mocks.scanner import MockScannerClient


# =============================================================================
# Simulation Fixtures
# =============================================================================


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source for reproducible walks."""
    return random.Random(42)


@pytest.fixture
def price_model(rng: random.Random) -> PriceModel:
    """Price model over the default asset table."""
    return PriceModel(rng=rng)


@pytest.fixture
def generator(price_model: PriceModel, rng: random.Random) -> OpportunityGenerator:
    """Opportunity generator sharing the seeded random source."""
    return OpportunityGenerator(price_model, rng=rng)


@pytest.fixture
def batch(generator: OpportunityGenerator) -> list[Opportunity]:
    """A 200-opportunity batch."""
    return generator.generate(200)


# =============================================================================
# Opportunity Fixtures
# =============================================================================


@pytest.fixture
def eth_opportunity() -> Opportunity:
    """ETH Binance -> Bybit at 1% spread."""
    return make_opportunity()


@pytest.fixture
def sample_opportunities() -> list[Opportunity]:
    """Three opportunities with distinct spreads, sorted spread descending."""
    return [
        make_opportunity(id=1, coin="ETH", buy_price=2500.0, sell_price=2550.0),
        make_opportunity(
            id=2, coin="BTC", buy_exchange="OKX", sell_exchange="Huobi",
            buy_price=45000.0, sell_price=45450.0,
        ),
        make_opportunity(
            id=3, coin="SOL", buy_exchange="Bybit", sell_exchange="OKX",
            buy_price=100.0, sell_price=100.5,
        ),
    ]


# =============================================================================
# Execution Fixtures
# =============================================================================


@pytest.fixture
def ledger() -> Ledger:
    """Fresh ledger with default balances."""
    return Ledger()


@pytest.fixture
def event_bus() -> EventBus:
    """Empty event bus."""
    return EventBus()


@pytest.fixture
def mock_client(sample_opportunities: list[Opportunity]) -> MockScannerClient:
    """Mock fetcher and ledger serving the sample opportunities."""
    return MockScannerClient(opportunities=sample_opportunities)


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Deterministic settings with fast broadcast periods."""
    return Settings(
        random_seed=7,
        batch_size=200,
        default_update_period=0.05,
        min_update_period=0.01,
        max_update_period=60.0,
        log_file=None,
    )

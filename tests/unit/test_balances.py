"""
Unit tests for session balance snapshots.
"""

import pytest

from arbscanner.core.errors import ScannerError
from arbscanner.execution.balances import MemorySnapshotStorage, SessionBalances


INITIAL = {"Binance": {"USDT": 10_000.0, "BTC": 0.5}}


class TestSessionBalances:
    """Tests for SessionBalances."""

    def test_first_initialize_wins(self) -> None:
        """Test that only the first snapshot of a session is kept."""
        session = SessionBalances()

        assert session.initialize(INITIAL)
        assert not session.initialize({"Binance": {"USDT": 1.0}})
        assert session.initial()["Binance"]["USDT"] == 10_000.0

    def test_snapshot_is_a_copy(self) -> None:
        """Test that mutating the source does not change the snapshot."""
        source = {"Binance": {"USDT": 10_000.0}}
        session = SessionBalances()
        session.initialize(source)

        source["Binance"]["USDT"] = 0.0

        assert session.initial()["Binance"]["USDT"] == 10_000.0

    def test_uninitialized(self) -> None:
        """Test that reading an absent snapshot raises."""
        session = SessionBalances()

        assert not session.is_initialized
        with pytest.raises(ScannerError):
            session.initial()

    def test_deltas(self) -> None:
        """Test per-currency change since the snapshot."""
        session = SessionBalances()
        session.initialize(INITIAL)

        deltas = session.deltas({"Binance": {"USDT": 9_500.0, "BTC": 0.51, "ETH": 2.0}})

        assert deltas["Binance"]["USDT"] == pytest.approx(-500.0)
        assert deltas["Binance"]["BTC"] == pytest.approx(0.01)
        assert deltas["Binance"]["ETH"] == pytest.approx(2.0)

    def test_tolerance(self) -> None:
        """Test that deltas below 1e-4 are reported as exactly zero."""
        session = SessionBalances()
        session.initialize(INITIAL)

        assert session.delta("Binance", "BTC", 0.50009) == 0.0
        assert session.delta("Binance", "BTC", 0.5002) == pytest.approx(0.0002)

    def test_reset(self) -> None:
        """Test that reset allows a new snapshot."""
        storage = MemorySnapshotStorage()
        session = SessionBalances(storage=storage)
        session.initialize(INITIAL)

        session.reset()

        assert storage.load(SessionBalances.STORAGE_KEY) is None
        assert session.initialize({"Binance": {"USDT": 1.0}})

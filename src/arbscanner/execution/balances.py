"""
Session-scoped balance snapshot.

The first balance load of a session is stored once; every later display
shows the change since that snapshot. Deltas smaller than the tolerance
are reported as zero to hide floating-point noise.
"""

import logging
from collections.abc import Mapping

from arbscanner.config.constants import BALANCE_TOLERANCE
from arbscanner.core.errors import ScannerError
from arbscanner.core.types import Balances, SnapshotStorage
from arbscanner.utils.math import snap_to_zero


logger = logging.getLogger(__name__)


class MemorySnapshotStorage:
    """Process-local snapshot storage; lives as long as the session object."""

    def __init__(self) -> None:
        self._data: dict[str, Balances] = {}

    def load(self, key: str) -> Balances | None:
        return self._data.get(key)

    def save(self, key: str, value: Mapping[str, Mapping[str, float]]) -> None:
        self._data[key] = {exchange: dict(amounts) for exchange, amounts in value.items()}

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SessionBalances:
    """
    Initial balance snapshot for one session.

    Never mutated after initialization except through reset().
    """

    STORAGE_KEY = "initial_balances"

    def __init__(
        self,
        storage: SnapshotStorage | None = None,
        tolerance: float = BALANCE_TOLERANCE,
    ) -> None:
        """
        Initialize session balances.

        Args:
            storage: Key-value store holding the snapshot.
            tolerance: Deltas with a smaller magnitude count as zero.
        """
        self._storage = storage or MemorySnapshotStorage()
        self._tolerance = tolerance

    @property
    def is_initialized(self) -> bool:
        return self._storage.load(self.STORAGE_KEY) is not None

    def initialize(self, balances: Mapping[str, Mapping[str, float]]) -> bool:
        """
        Take the session snapshot unless one exists already.

        Returns:
            True if this call stored the snapshot.
        """
        if self.is_initialized:
            return False
        self._storage.save(self.STORAGE_KEY, balances)
        logger.info(f"Session balances captured for {len(balances)} exchanges")
        return True

    def reset(self) -> None:
        """Forget the snapshot so the next initialize() captures a new one."""
        self._storage.delete(self.STORAGE_KEY)

    def initial(self) -> Balances:
        """
        Get a copy of the snapshot.

        Raises:
            ScannerError: If the session was never initialized.
        """
        snapshot = self._storage.load(self.STORAGE_KEY)
        if snapshot is None:
            raise ScannerError("Session balances are not initialized")
        return {exchange: dict(amounts) for exchange, amounts in snapshot.items()}

    def delta(self, exchange: str, currency: str, current: float) -> float:
        """Change of one balance since the session started."""
        initial = self.initial().get(exchange, {}).get(currency, 0.0)
        return snap_to_zero(current - initial, self._tolerance)

    def deltas(self, current: Mapping[str, Mapping[str, float]]) -> Balances:
        """Change of every current balance since the session started."""
        initial = self.initial()
        return {
            exchange: {
                currency: snap_to_zero(
                    amount - initial.get(exchange, {}).get(currency, 0.0),
                    self._tolerance,
                )
                for currency, amount in amounts.items()
            }
            for exchange, amounts in current.items()
        }

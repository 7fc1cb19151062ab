"""Shared pytest fixtures for suberra-deploy tests."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

from suberra_deploy.exceptions import TransactionError
from suberra_deploy.state import NetworkStateStore
from suberra_deploy.transactions import TxResult

DEPLOYER = "terra1deployer"


class FakeLedger:
    """
    In-memory stand-in for ContractClient.

    Records every call in ``calls`` as (operation, key, *args). Failures are
    injected through ``fail[(operation, key)] = exception``; the key is the
    artifact stem for uploads, the label for instantiations and the target
    address for execute/migrate.
    """

    def __init__(
        self,
        code_ids: Optional[Dict[str, int]] = None,
        addresses: Optional[Dict[str, str]] = None,
        address: str = DEPLOYER,
    ):
        self.address = address
        self.code_ids = dict(code_ids or {})
        self.addresses = dict(addresses or {})
        self.fail: Dict[Tuple[str, str], Exception] = {}
        self.calls: List[Tuple[Any, ...]] = []
        self._next_code_id = 100
        self._tx_count = 0

    def _maybe_fail(self, operation: str, key: str) -> None:
        error = self.fail.get((operation, key))
        if error is not None:
            raise error

    def _tx(self) -> TxResult:
        self._tx_count += 1
        return TxResult(txhash=f"TX{self._tx_count}", code=0, raw_log="[]")

    def upload(self, path) -> int:
        stem = Path(path).stem
        self.calls.append(("upload", stem))
        self._maybe_fail("upload", stem)
        if stem not in self.code_ids:
            self._next_code_id += 1
            self.code_ids[stem] = self._next_code_id
        return self.code_ids[stem]

    def instantiate(self, code_id, init_msg, admin=None, label="") -> str:
        self.calls.append(("instantiate", label, code_id, init_msg))
        self._maybe_fail("instantiate", label)
        return self.addresses.setdefault(label, f"terra1{label}")

    def execute(self, contract, msg, funds=None) -> TxResult:
        self.calls.append(("execute", contract, msg))
        self._maybe_fail("execute", contract)
        return self._tx()

    def migrate(self, contract, code_id, msg=None) -> TxResult:
        self.calls.append(("migrate", contract, code_id, msg))
        self._maybe_fail("migrate", contract)
        return self._tx()

    def query(self, contract, query) -> Any:
        self.calls.append(("query", contract, query))
        return None

    def ops(self, operation: str) -> List[Tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == operation]


def tx_failure(raw_log: str = "out of gas", code: int = 11) -> TransactionError:
    return TransactionError(code, "sdk", raw_log, "FAILEDHASH")


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    """Create a temporary state directory for tests."""
    directory = tmp_path / ".suberra-deploy"
    directory.mkdir(parents=True, exist_ok=True)
    return directory


@pytest.fixture
def store(state_dir: Path) -> NetworkStateStore:
    return NetworkStateStore(state_dir)


@pytest.fixture
def artifacts_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "artifacts"
    directory.mkdir()
    return directory


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()

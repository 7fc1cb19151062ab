"""Per-network deployment state persistence for suberra-deploy."""

import json
import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from .exceptions import StateInvariantError, UnknownContractError
from .paths import get_state_paths

logger = logging.getLogger(__name__)

LINKS_KEY = "links"


class FieldKind(Enum):
    """
    Per-contract fields of the deployment record.

    Value strings define the persisted key suffix: ``<contract>_<value>``.
    """

    CODE_ID = "code_id"
    CONTRACT = "contract"


def state_key(name: str, kind: FieldKind) -> str:
    return f"{name}_{kind.value}"


def parse_state_key(key: str) -> Optional[tuple[str, FieldKind]]:
    """
    Split a record key into (contract name, field kind).

    Returns:
        Tuple of (name, kind), or None for network-scoped keys
    """
    for kind in FieldKind:
        suffix = f"_{kind.value}"
        if key.endswith(suffix) and len(key) > len(suffix):
            return key[: -len(suffix)], kind
    return None


def _atomic_write_json(path: Path, data: Dict[str, Any]) -> None:
    """Write JSON via temp file + fsync + rename so readers never see a torn file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp", delete=False
    ) as tf:
        tmp_name = tf.name
        try:
            json.dump(data, tf, indent=2)
            tf.flush()
            os.fsync(tf.fileno())
        except (TypeError, ValueError, OSError):
            tf.close()
            os.unlink(tmp_name)
            raise
    try:
        os.replace(tmp_name, path)
    except OSError:
        os.unlink(tmp_name)
        raise


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError as e:
        raise StateInvariantError(f"State file {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise StateInvariantError(f"State file {path} must contain a JSON object")
    return data


class DeploymentState:
    """
    Typed view over one network's deployment record.

    Lookups and writes must name a contract from the descriptor set. Recorded
    keys naming other contracts are kept as network-scoped values. Existing values are never overwritten
    unless ``replace=True`` is passed explicitly.
    """

    def __init__(
        self,
        network: str,
        known_contracts: Iterable[str],
        record: Optional[Dict[str, Any]] = None,
    ):
        self.network = network
        self._known = frozenset(known_contracts)
        self._record: Dict[str, Any] = dict(record or {})
        self._validate()

    def _validate(self) -> None:
        for key, value in self._record.items():
            if key == LINKS_KEY:
                if not isinstance(value, dict):
                    raise StateInvariantError(f"'{LINKS_KEY}' must be an object on {self.network}")
                continue

            parsed = parse_state_key(key)
            if parsed is None:
                continue  # network-scoped value
            name, kind = parsed
            if name not in self._known:
                # network-scoped value such as a pre-existing dependency address
                logger.warning(
                    "Record for %s has %s, which names no known contract", self.network, key
                )
                continue
            if kind is FieldKind.CONTRACT and state_key(name, FieldKind.CODE_ID) not in self._record:
                logger.warning(
                    "Record for %s has %s without %s", self.network, key,
                    state_key(name, FieldKind.CODE_ID),
                )

    def _check_known(self, name: str) -> None:
        if name not in self._known:
            raise UnknownContractError(
                f"Unknown contract '{name}' referenced on network '{self.network}'"
            )

    def get(self, name: str, kind: FieldKind) -> Any:
        self._check_known(name)
        return self._record.get(state_key(name, kind))

    def code_id(self, name: str) -> Optional[int]:
        return self.get(name, FieldKind.CODE_ID)

    def contract(self, name: str) -> Optional[str]:
        return self.get(name, FieldKind.CONTRACT)

    def set_code_id(self, name: str, code_id: int, replace: bool = False) -> None:
        """
        Record the code id of an uploaded artifact.

        Raises:
            StateInvariantError: If a code id is already recorded and replace is False
        """
        self._set(name, FieldKind.CODE_ID, int(code_id), replace)

    def set_contract(self, name: str, address: str, replace: bool = False) -> None:
        """
        Record the address of an instantiated contract.

        Raises:
            StateInvariantError: If no code id was recorded for the contract, or an
                address is already recorded and replace is False
        """
        if self.code_id(name) is None:
            raise StateInvariantError(
                f"Cannot record {state_key(name, FieldKind.CONTRACT)} without a code id"
            )
        self._set(name, FieldKind.CONTRACT, address, replace)

    def _set(self, name: str, kind: FieldKind, value: Any, replace: bool) -> None:
        self._check_known(name)
        key = state_key(name, kind)
        if key in self._record and not replace and self._record[key] != value:
            raise StateInvariantError(
                f"Refusing to overwrite {key}={self._record[key]!r} on {self.network}"
            )
        self._record[key] = value

    def link(self, link_key: str) -> Optional[str]:
        """Return the tx hash of a recorded link, if any."""
        return self._record.get(LINKS_KEY, {}).get(link_key)

    def set_link(self, link_key: str, txhash: str) -> None:
        self._record.setdefault(LINKS_KEY, {})[link_key] = txhash

    def as_record(self) -> Dict[str, Any]:
        """Return a deep copy of the record in its persisted form."""
        return json.loads(json.dumps(self._record))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DeploymentState):
            return NotImplemented
        return self.network == other.network and self._record == other._record

    def __repr__(self) -> str:
        return f"DeploymentState({self.network!r}, {self._record!r})"


class NetworkStateStore:
    """
    Persists one deployment record per network identity, plus a shared config
    document holding network parameters that are not tied to one contract.

    Reads of a missing file yield an empty record. Writes replace the whole
    document atomically. No cross-process locking is done.
    """

    def __init__(self, state_dir: Optional[Union[str, Path]] = None):
        self._state_dir = state_dir

    def state_path(self, network: str) -> Path:
        return get_state_paths(network, self._state_dir)[0]

    def config_path(self, network: str) -> Path:
        return get_state_paths(network, self._state_dir)[1]

    def read(self, network: str) -> Dict[str, Any]:
        """
        Read the deployment record of a network.

        Args:
            network: Network identity

        Returns:
            The persisted record, or an empty dict if none exists

        Raises:
            StateInvariantError: If the file exists but is not a JSON object
        """
        return _read_json(self.state_path(network))

    def write(self, network: str, record: Dict[str, Any]) -> None:
        """Replace the deployment record of a network."""
        _atomic_write_json(self.state_path(network), record)

    def load(self, network: str, known_contracts: Iterable[str]) -> DeploymentState:
        """Read a network's record as a validated DeploymentState."""
        return DeploymentState(network, known_contracts, self.read(network))

    def save(self, state: DeploymentState) -> None:
        self.write(state.network, state.as_record())

    def read_config(self, network: str) -> Dict[str, Any]:
        """
        Read the network parameters stored for a network in the config document.

        Returns:
            Parameters dict, empty if the document or network entry is missing
        """
        return dict(_read_json(self.config_path(network)).get(network, {}))

    def write_config(self, network: str, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Replace the network parameters of one network, keeping other networks' entries.

        Returns:
            The stored parameters
        """
        path = self.config_path(network)
        document = _read_json(path)
        document[network] = dict(config)
        _atomic_write_json(path, document)
        return document[network]

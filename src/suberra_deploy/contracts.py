"""Artifact upload, contract instantiation, execution and migration."""

import base64
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .constants import FEE_DENOM
from .exceptions import ArtifactNotFoundError, MalformedResponseError
from .messages import Coins, execute_msg, instantiate_msg, migrate_msg, store_code_msg
from .transactions import TransactionSubmitter, TxResult


def read_artifact(path: Union[str, Path]) -> str:
    """
    Read a compiled artifact as base64.

    Raises:
        ArtifactNotFoundError: If the file does not exist
    """
    path = Path(path)
    try:
        return base64.b64encode(path.read_bytes()).decode()
    except FileNotFoundError as e:
        raise ArtifactNotFoundError(f"Artifact not found: {path}. Build the contracts first.") from e


def extract_code_id(result: TxResult) -> int:
    """
    Get the code id assigned by a store-code transaction.

    Raises:
        MalformedResponseError: If no store_code.code_id attribute was emitted
    """
    values = result.attributes("store_code", "code_id")
    if not values:
        raise MalformedResponseError(f"Tx {result.txhash} emitted no store_code.code_id")
    try:
        return int(values[0])
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(
            f"Tx {result.txhash} emitted non-numeric code_id {values[0]!r}"
        ) from e


def extract_contract_address(result: TxResult) -> str:
    """
    Get the address of the contract created by an instantiate transaction.

    Raises:
        MalformedResponseError: If no contract address attribute was emitted
    """
    # wasmd reports MsgInstantiateContract under _contract_address
    address = result.first_attribute("contract_address") or result.first_attribute(
        "_contract_address"
    )
    if not address:
        raise MalformedResponseError(f"Tx {result.txhash} emitted no contract_address")
    return address


def upload_contract(submitter: TransactionSubmitter, filepath: Union[str, Path]) -> int:
    """Upload an artifact and return its code id."""
    msg = store_code_msg(submitter.address, read_artifact(filepath))
    return extract_code_id(submitter.submit([msg]))


def instantiate_contract(
    submitter: TransactionSubmitter,
    admin_address: Optional[str],
    code_id: int,
    init_msg: Dict[str, Any],
    label: str = "",
) -> str:
    """Instantiate a contract from a code id and return its address."""
    msg = instantiate_msg(submitter.address, admin_address, code_id, init_msg, label=label)
    return extract_contract_address(submitter.submit([msg]))


class ContractClient:
    """Ledger operations the deployer needs, bound to one deployer account."""

    def __init__(self, submitter: TransactionSubmitter):
        self.submitter = submitter

    @property
    def address(self) -> str:
        return self.submitter.address

    def upload(self, filepath: Union[str, Path]) -> int:
        return upload_contract(self.submitter, filepath)

    def instantiate(
        self,
        code_id: int,
        init_msg: Dict[str, Any],
        admin: Optional[str] = None,
        label: str = "",
    ) -> str:
        return instantiate_contract(self.submitter, admin, code_id, init_msg, label=label)

    def execute(
        self, contract: str, msg: Dict[str, Any], funds: Optional[Coins] = None
    ) -> TxResult:
        return self.submitter.submit([execute_msg(self.address, contract, msg, funds)])

    def migrate(
        self, contract: str, code_id: int, msg: Optional[Dict[str, Any]] = None
    ) -> TxResult:
        """Migrate a contract to new code; the deployer must be the contract admin."""
        return self.submitter.submit([migrate_msg(self.address, contract, code_id, msg)])

    def query(self, contract: str, query: Dict[str, Any]) -> Any:
        return self.submitter.lcd.query_contract(contract, query)

    def balance(self, address: str, denom: str = FEE_DENOM) -> int:
        return int(self.submitter.lcd.balance(address, denom))

"""Minimal LCD (REST) client for a Cosmos/Terra node."""

import base64
import json
from typing import Any, Dict, Optional

import requests

from .constants import DEFAULT_REQUEST_TIMEOUT
from .exceptions import TransportError


class LcdClient:
    """Thin wrapper over the node's REST endpoints used by the deployer."""

    def __init__(
        self,
        url: str,
        chain_id: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.url = url.rstrip("/")
        self.chain_id = chain_id
        self.timeout = timeout
        self._session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        try:
            return self._session.request(
                method, f"{self.url}{path}", timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise TransportError(f"Network error during {method} {path}: {e}") from e

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    def _checked(self, response: requests.Response, what: str) -> Dict[str, Any]:
        payload = self._decode(response)
        if response.status_code != 200:
            message = None
            if isinstance(payload, dict):
                message = payload.get("message") or payload.get("error")
            raise TransportError(
                f"{what} failed with status {response.status_code}"
                + (f": {message}" if message else ""),
                payload=payload,
            )
        if not isinstance(payload, dict):
            raise TransportError(f"{what} returned a non-JSON body", payload=payload)
        return payload

    def broadcast(self, tx_bytes: str, mode: str = "BROADCAST_MODE_SYNC") -> Dict[str, Any]:
        """
        Broadcast a signed transaction.

        Args:
            tx_bytes: Base64 encoded signed transaction
            mode: Cosmos broadcast mode

        Returns:
            The ``tx_response`` object

        Raises:
            TransportError: On connection or HTTP errors
        """
        response = self._request(
            "POST", "/cosmos/tx/v1beta1/txs", json={"tx_bytes": tx_bytes, "mode": mode}
        )
        return self._checked(response, "Broadcast").get("tx_response", {})

    def get_tx(self, txhash: str) -> Optional[Dict[str, Any]]:
        """
        Look up an indexed transaction.

        Returns:
            The ``tx_response`` object, or None if the node has not indexed it yet
        """
        response = self._request("GET", f"/cosmos/tx/v1beta1/txs/{txhash}")
        if response.status_code == 404:
            return None
        payload = self._decode(response)
        # some nodes answer 400/500 with "tx not found" while indexing
        if response.status_code != 200 and "not found" in json.dumps(payload).lower():
            return None
        return self._checked(response, f"Tx lookup {txhash}").get("tx_response")

    def account(self, address: str) -> Dict[str, Any]:
        """Return account number and sequence for an address."""
        response = self._request("GET", f"/cosmos/auth/v1beta1/accounts/{address}")
        account = self._checked(response, f"Account lookup {address}").get("account", {})
        # vesting and module accounts nest the base account
        base = account.get("base_account", account)
        return {
            "account_number": int(base.get("account_number", 0)),
            "sequence": int(base.get("sequence", 0)),
        }

    def query_contract(self, contract: str, query: Dict[str, Any]) -> Any:
        """
        Run a smart query against a contract.

        Returns:
            The ``data`` field of the query response
        """
        encoded = base64.b64encode(json.dumps(query).encode()).decode()
        response = self._request(
            "GET", f"/cosmwasm/wasm/v1/contract/{contract}/smart/{encoded}"
        )
        return self._checked(response, f"Query {contract}").get("data")

    def balance(self, address: str, denom: str) -> str:
        """Return the native balance of an address, "0" if it holds none."""
        response = self._request(
            "GET", f"/cosmos/bank/v1beta1/balances/{address}/by_denom", params={"denom": denom}
        )
        coin = self._checked(response, f"Balance {address}").get("balance") or {}
        return coin.get("amount", "0")

"""Transaction building, broadcasting and outcome classification."""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .constants import (
    CONFIRM_POLL_INITIAL,
    CONFIRM_POLL_MAX,
    DEFAULT_CONFIRM_TIMEOUT,
    DEFAULT_GAS_LIMIT,
    DEFAULT_GAS_PRICE,
    DEFAULT_SETTLE_DELAY,
    FEE_DENOM,
)
from .exceptions import TransactionError, TransportError
from .lcd import LcdClient
from .messages import Msg
from .signing import Signer

logger = logging.getLogger(__name__)


@dataclass
class TxResult:
    """Outcome of one broadcast transaction."""

    txhash: str
    code: int
    raw_log: str
    codespace: Optional[str] = None
    height: Optional[int] = None
    events: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.code == 0

    @classmethod
    def from_response(cls, tx_response: Dict[str, Any]) -> "TxResult":
        """
        Build a TxResult from an LCD ``tx_response`` object.

        Events come from ``logs[*].events`` when present, otherwise from the
        flat ``events`` list newer nodes return.
        """
        events: List[Dict[str, Any]] = []
        for log in tx_response.get("logs") or []:
            events.extend(log.get("events") or [])
        if not events:
            events = list(tx_response.get("events") or [])

        height = tx_response.get("height")
        return cls(
            txhash=tx_response.get("txhash", ""),
            code=int(tx_response.get("code") or 0),
            raw_log=tx_response.get("raw_log", ""),
            codespace=tx_response.get("codespace") or None,
            height=int(height) if height not in (None, "") else None,
            events=events,
        )

    def attributes(self, event_type: str, key: str) -> List[str]:
        """Return every value of ``key`` across events of ``event_type``, in emit order."""
        return [
            attr.get("value")
            for event in self.events
            if event.get("type") == event_type
            for attr in event.get("attributes") or []
            if attr.get("key") == key
        ]

    def first_attribute(self, key: str) -> Optional[str]:
        """Return the first value of ``key`` among all emitted events."""
        for event in self.events:
            for attr in event.get("attributes") or []:
                if attr.get("key") == key:
                    return attr.get("value")
        return None


class TransactionSubmitter:
    """
    Packs messages into one transaction, signs, broadcasts and waits for it.

    After broadcast the submitter sleeps ``settle_delay`` seconds, then polls
    the node with exponential backoff until the transaction is indexed or
    ``confirm_timeout`` elapses. No retries are made on failure.
    """

    def __init__(
        self,
        lcd: LcdClient,
        signer: Signer,
        gas_price: float = DEFAULT_GAS_PRICE,
        gas_limit: int = DEFAULT_GAS_LIMIT,
        fee_denom: str = FEE_DENOM,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        confirm_timeout: float = DEFAULT_CONFIRM_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.lcd = lcd
        self.signer = signer
        self.gas_price = gas_price
        self.gas_limit = gas_limit
        self.fee_denom = fee_denom
        self.settle_delay = settle_delay
        self.confirm_timeout = confirm_timeout
        self._sleep = sleep
        self._clock = clock

    @property
    def address(self) -> str:
        return self.signer.address

    def fee(self) -> Dict[str, Any]:
        amount = math.ceil(self.gas_limit * self.gas_price)
        return {
            "amount": [{"denom": self.fee_denom, "amount": str(amount)}],
            "gas_limit": str(self.gas_limit),
            "payer": "",
            "granter": "",
        }

    def build_tx(self, msgs: Sequence[Msg], memo: str = "") -> Dict[str, Any]:
        """Build an unsigned transaction carrying all messages."""
        if not msgs:
            raise ValueError("A transaction needs at least one message")
        return {
            "body": {
                "messages": list(msgs),
                "memo": memo,
                "timeout_height": "0",
                "extension_options": [],
                "non_critical_extension_options": [],
            },
            "auth_info": {"signer_infos": [], "fee": self.fee()},
            "signatures": [],
        }

    def submit(self, msgs: Sequence[Msg], memo: str = "") -> TxResult:
        """
        Submit messages as one atomic transaction.

        Args:
            msgs: Messages, applied in order; all or none take effect
            memo: Optional transaction memo

        Returns:
            The indexed TxResult

        Raises:
            TransportError: On connectivity/HTTP errors or if the tx never gets indexed
            TransactionError: If the ledger rejected or reverted the transaction
            SigningError: If the signer fails
        """
        tx = self.build_tx(msgs, memo)
        account = self.lcd.account(self.address)
        tx_bytes = self.signer.sign(tx, account["account_number"], account["sequence"])

        broadcast = TxResult.from_response(self.lcd.broadcast(tx_bytes))
        _raise_for_code(broadcast)
        logger.debug("Broadcast %s (%d msgs)", broadcast.txhash, len(msgs))

        self._sleep(self.settle_delay)
        result = self._wait_for_tx(broadcast.txhash)
        _raise_for_code(result)
        return result

    def _wait_for_tx(self, txhash: str) -> TxResult:
        deadline = self._clock() + self.confirm_timeout
        interval = CONFIRM_POLL_INITIAL
        while True:
            tx_response = self.lcd.get_tx(txhash)
            if tx_response is not None:
                return TxResult.from_response(tx_response)

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise TransportError(
                    f"Transaction {txhash} not indexed within {self.confirm_timeout}s",
                    payload={"txhash": txhash},
                )
            logger.debug("Tx %s not indexed yet, retrying in %.1fs", txhash, interval)
            self._sleep(min(interval, remaining))
            interval = min(interval * 2, CONFIRM_POLL_MAX)


def _raise_for_code(result: TxResult) -> None:
    if result.code != 0:
        raise TransactionError(result.code, result.codespace, result.raw_log, result.txhash)

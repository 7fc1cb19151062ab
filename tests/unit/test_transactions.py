"""Unit tests for TransactionSubmitter and TxResult."""

from typing import Any, Dict, List

import pytest
import requests
import responses

from suberra_deploy.exceptions import TransactionError, TransportError
from suberra_deploy.lcd import LcdClient
from suberra_deploy.messages import execute_msg
from suberra_deploy.transactions import TransactionSubmitter, TxResult

LCD = "http://lcd.test"
DEPLOYER = "terra1deployer"
TXHASH = "ABCDEF"


class FakeSigner:
    address = DEPLOYER

    def __init__(self):
        self.signed: List[Dict[str, Any]] = []

    def sign(self, tx, account_number, sequence):
        self.signed.append({"tx": tx, "account_number": account_number, "sequence": sequence})
        return "c2lnbmVk"


def _submitter(sleeps: List[float], **kwargs) -> TransactionSubmitter:
    return TransactionSubmitter(
        LcdClient(LCD, "localterra"),
        FakeSigner(),
        sleep=sleeps.append,
        **kwargs,
    )


def _tx_response(code: int = 0, raw_log: str = "[]", **extra) -> Dict[str, Any]:
    return {"tx_response": {"txhash": TXHASH, "code": code, "raw_log": raw_log, **extra}}


def _mock_account():
    responses.add(
        responses.GET,
        f"{LCD}/cosmos/auth/v1beta1/accounts/{DEPLOYER}",
        json={"account": {"account_number": "12", "sequence": "3"}},
    )


def _mock_broadcast(**kwargs):
    responses.add(responses.POST, f"{LCD}/cosmos/tx/v1beta1/txs", **kwargs)


def _mock_lookup(**kwargs):
    responses.add(responses.GET, f"{LCD}/cosmos/tx/v1beta1/txs/{TXHASH}", **kwargs)


MSG = execute_msg(DEPLOYER, "terra1contract", {"ping": {}})


class TestSubmit:
    """Test TransactionSubmitter.submit."""

    @responses.activate
    def test_success_returns_indexed_result(self):
        """Test a successful submit returns the indexed events."""
        _mock_account()
        _mock_broadcast(json=_tx_response())
        events = [{"type": "wasm", "attributes": [{"key": "action", "value": "ping"}]}]
        _mock_lookup(json=_tx_response(height="77", logs=[{"events": events}]))

        sleeps: List[float] = []
        result = _submitter(sleeps, settle_delay=2.0).submit([MSG])

        assert result.txhash == TXHASH
        assert result.success
        assert result.height == 77
        assert result.events == events
        assert sleeps == [2.0]

    @responses.activate
    def test_signs_with_account_sequence(self):
        """Test that account number and sequence come from the LCD."""
        _mock_account()
        _mock_broadcast(json=_tx_response())
        _mock_lookup(json=_tx_response())

        submitter = _submitter([])
        submitter.submit([MSG, MSG])

        signed = submitter.signer.signed[0]
        assert signed["account_number"] == 12
        assert signed["sequence"] == 3
        assert signed["tx"]["body"]["messages"] == [MSG, MSG]

    @responses.activate
    def test_broadcast_sends_tx_bytes(self):
        _mock_account()
        _mock_broadcast(json=_tx_response())
        _mock_lookup(json=_tx_response())

        _submitter([]).submit([MSG])

        broadcast = next(c for c in responses.calls if c.request.method == "POST")
        assert b'"tx_bytes": "c2lnbmVk"' in broadcast.request.body

    @responses.activate
    def test_nonzero_broadcast_code_raises_transaction_error(self):
        """Test that a CheckTx failure carries code and raw log verbatim."""
        _mock_account()
        _mock_broadcast(json=_tx_response(code=5, raw_log="insufficient funds", codespace="sdk"))

        sleeps: List[float] = []
        with pytest.raises(TransactionError) as exc_info:
            _submitter(sleeps).submit([MSG])

        assert exc_info.value.code == 5
        assert exc_info.value.codespace == "sdk"
        assert exc_info.value.raw_log == "insufficient funds"
        assert exc_info.value.txhash == TXHASH
        assert sleeps == []

    @responses.activate
    def test_nonzero_delivered_code_raises_transaction_error(self):
        """Test that a reverted transaction raises after being indexed."""
        _mock_account()
        _mock_broadcast(json=_tx_response())
        _mock_lookup(json=_tx_response(code=4, raw_log="execute wasm contract failed", codespace="wasm"))

        with pytest.raises(TransactionError) as exc_info:
            _submitter([]).submit([MSG])

        assert exc_info.value.code == 4
        assert exc_info.value.codespace == "wasm"
        assert exc_info.value.raw_log == "execute wasm contract failed"

    @responses.activate
    def test_http_error_raises_transport_error_with_payload(self):
        """Test that HTTP errors surface the response payload."""
        _mock_account()
        payload = {"code": 3, "message": "tx parse error", "details": []}
        _mock_broadcast(json=payload, status=400)

        with pytest.raises(TransportError) as exc_info:
            _submitter([]).submit([MSG])

        assert exc_info.value.payload == payload
        assert "tx parse error" in str(exc_info.value)

    @responses.activate
    def test_connection_error_raises_transport_error(self):
        """Test that connection failures are transport errors."""
        responses.add(
            responses.GET,
            f"{LCD}/cosmos/auth/v1beta1/accounts/{DEPLOYER}",
            body=requests.ConnectionError("connection refused"),
        )

        with pytest.raises(TransportError) as exc_info:
            _submitter([]).submit([MSG])

        assert "connection refused" in str(exc_info.value)

    @responses.activate
    def test_polls_until_indexed(self):
        """Test that the submitter retries with backoff while the tx is unknown."""
        _mock_account()
        _mock_broadcast(json=_tx_response())
        _mock_lookup(json={"code": 5, "message": "tx not found"}, status=404)
        _mock_lookup(json={"code": 5, "message": "tx not found"}, status=404)
        _mock_lookup(json=_tx_response())

        sleeps: List[float] = []
        result = _submitter(sleeps, settle_delay=1.0).submit([MSG])

        assert result.txhash == TXHASH
        assert sleeps == [1.0, 0.5, 1.0]

    @responses.activate
    def test_gives_up_after_confirm_timeout(self):
        """Test that a never-indexed tx becomes a transport error."""
        _mock_account()
        _mock_broadcast(json=_tx_response())
        _mock_lookup(json={"message": "tx not found"}, status=404)

        with pytest.raises(TransportError) as exc_info:
            _submitter([], confirm_timeout=0).submit([MSG])

        assert exc_info.value.payload == {"txhash": TXHASH}

    def test_empty_batch_rejected(self):
        with pytest.raises(ValueError):
            _submitter([]).build_tx([])


class TestFeePolicy:
    """Test fee construction."""

    def test_fee_in_uusd(self):
        submitter = _submitter([], gas_limit=1_000_000, gas_price=0.15)
        fee = submitter.build_tx([MSG])["auth_info"]["fee"]
        assert fee["amount"] == [{"denom": "uusd", "amount": "150000"}]
        assert fee["gas_limit"] == "1000000"

    def test_fee_rounds_up(self):
        submitter = _submitter([], gas_limit=3, gas_price=0.15)
        assert submitter.fee()["amount"][0]["amount"] == "1"


class TestTxResult:
    """Test TxResult parsing."""

    def test_events_from_logs(self):
        result = TxResult.from_response(
            {
                "txhash": "H",
                "code": 0,
                "raw_log": "",
                "logs": [
                    {"events": [{"type": "store_code", "attributes": [{"key": "code_id", "value": "7"}]}]},
                    {"events": [{"type": "store_code", "attributes": [{"key": "code_id", "value": "8"}]}]},
                ],
            }
        )
        assert result.attributes("store_code", "code_id") == ["7", "8"]

    def test_falls_back_to_flat_events(self):
        result = TxResult.from_response(
            {
                "txhash": "H",
                "logs": [],
                "events": [{"type": "instantiate", "attributes": [{"key": "contract_address", "value": "terra1x"}]}],
            }
        )
        assert result.first_attribute("contract_address") == "terra1x"
        assert result.code == 0

    def test_missing_attribute(self):
        result = TxResult.from_response({"txhash": "H"})
        assert result.first_attribute("contract_address") is None
        assert result.attributes("store_code", "code_id") == []
        assert result.height is None

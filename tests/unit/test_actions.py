"""Unit tests for post-deployment actions."""

import base64
import json

from conftest import DEPLOYER, FakeLedger, tx_failure
from suberra_deploy.actions import (
    MAX_ALLOWANCE,
    create_subscribe_msgs,
    create_subwallet,
    subscribe_to_product,
    update_uri,
)
from suberra_deploy.state import DeploymentState

KNOWN = ["subwallet_factory", "product_factory"]


class QueryLedger(FakeLedger):
    """FakeLedger answering smart queries from a list of canned answers."""

    def __init__(self, answers, **kwargs):
        super().__init__(**kwargs)
        self.answers = list(answers)
        self.submitter = self

    def query(self, contract, query):
        self.calls.append(("query", contract, query))
        return self.answers.pop(0)

    def submit(self, msgs, memo=""):
        self.calls.append(("submit", msgs))
        return self._tx()


def _state(**contracts) -> DeploymentState:
    record = {}
    for name, address in contracts.items():
        record[f"{name}_code_id"] = 1
        record[f"{name}_contract"] = address
    return DeploymentState("localterra", KNOWN, record)


class TestCreateSubwallet:
    """Test create_subwallet."""

    def test_skips_existing_subwallet(self):
        ledger = QueryLedger(["terra1sub"])
        assert create_subwallet(ledger, _state(subwallet_factory="terra1f")) == "terra1sub"
        assert ledger.ops("execute") == []

    def test_creates_subwallet(self):
        ledger = QueryLedger([None, "terra1sub"])
        assert create_subwallet(ledger, _state(subwallet_factory="terra1f")) == "terra1sub"
        assert ledger.ops("execute") == [("execute", "terra1f", {"create_account": {}})]

    def test_missing_factory(self):
        ledger = QueryLedger([])
        assert create_subwallet(ledger, _state()) is None
        assert ledger.calls == []

    def test_failure_is_logged_not_raised(self):
        ledger = QueryLedger([None])
        ledger.fail[("execute", "terra1f")] = tx_failure()
        assert create_subwallet(ledger, _state(subwallet_factory="terra1f")) is None


class TestSubscribe:
    """Test subscription messages and flow."""

    def test_subscribe_msgs(self):
        allowance, subscribe = create_subscribe_msgs(DEPLOYER, "terra1sub", "terra1prod")

        assert allowance["contract"] == "terra1sub"
        assert allowance["msg"]["increase_allowance"] == {
            "spender": "terra1prod",
            "amount": {"denom": "uusd", "amount": str(MAX_ALLOWANCE)},
        }
        inner = subscribe["msg"]["execute"]["msgs"][0]["wasm"]["execute"]
        assert inner["contract_addr"] == "terra1prod"
        assert json.loads(base64.b64decode(inner["msg"])) == {"subscribe": {}}

    def test_subscribes_in_one_transaction(self):
        ledger = QueryLedger(
            [{"products": ["terra1prod"]}, "terra1sub", {"is_active": False}]
        )
        state = _state(subwallet_factory="terra1f", product_factory="terra1pf")

        assert subscribe_to_product(ledger, state) == "TX1"
        [submit] = ledger.ops("submit")
        assert len(submit[1]) == 2

    def test_already_subscribed(self):
        ledger = QueryLedger(
            [{"products": ["terra1prod"]}, "terra1sub", {"is_active": True}]
        )
        state = _state(subwallet_factory="terra1f", product_factory="terra1pf")

        assert subscribe_to_product(ledger, state) is None
        assert ledger.ops("submit") == []


class TestUpdateUri:
    """Test update_uri."""

    def test_updates_each_contract(self):
        ledger = FakeLedger()
        ledger.fail[("execute", "terra1b")] = tx_failure()

        results = update_uri(ledger, ["terra1a", "terra1b"], "https://meta/<contract>.json")

        assert results == {"terra1a": "TX1", "terra1b": None}
        assert ledger.ops("execute")[0][2] == {
            "update_config": {"uri": "https://meta/terra1a.json"}
        }

"""Unit tests for the instantiation plan and link table."""

import pytest

from suberra_deploy.descriptors import resolve_descriptors
from suberra_deploy.exceptions import UnknownContractError
from suberra_deploy.plan import (
    INIT_PLAN,
    ConfigureStep,
    InstantiateStep,
    LinkStep,
    code_id_of,
    config_value,
    contract_of,
    resolve_links,
    resolve_plan,
)


def _names(steps):
    return [step.name for step in steps]


class TestResolvePlan:
    """Test the resolve_plan function."""

    def test_local_plan_order(self):
        """Test the declared dependency order on the local network."""
        steps = resolve_plan(resolve_descriptors("localterra"))
        assert _names(steps) == [
            "jobs_registry",
            "stub_anchor",
            "aterra_token",
            "stub_anchor_config",
            "subwallet_factory",
            "product_factory",
            "p2p",
            "token_stream",
        ]

    def test_remote_plan_drops_stubs(self):
        steps = resolve_plan(resolve_descriptors("columbus-5"))
        assert "stub_anchor" not in _names(steps)
        assert "aterra_token" not in _names(steps)
        assert not any(isinstance(step, ConfigureStep) for step in steps)

    def test_code_only_contracts_are_not_planned(self):
        steps = resolve_plan(resolve_descriptors("localterra"))
        assert "subwallet" not in _names(steps)
        assert "subscription_product" not in _names(steps)

    def test_unplanned_descriptors_get_empty_init(self):
        """Test that descriptors the plan does not name are appended in order."""
        steps = resolve_plan({"b": "b", "a": "a"})
        assert _names(steps) == ["b", "a"]
        assert steps[0].build_msg({}, "terra1deployer") == {}

    def test_requirement_on_unknown_contract_raises(self):
        plan = [InstantiateStep("a", requires=(contract_of("ghost"),))]
        with pytest.raises(UnknownContractError):
            resolve_plan({"a": "a"}, plan)

    def test_config_requirements_are_not_contracts(self):
        plan = [InstantiateStep("a", requires=(config_value("external"),))]
        assert _names(resolve_plan({"a": "a"}, plan)) == ["a"]


class TestRequirements:
    """Test requirement labels."""

    def test_labels(self):
        assert code_id_of("subwallet").label == "subwallet_code_id"
        assert contract_of("jobs_registry").label == "jobs_registry_contract"
        assert config_value("anchor_market_contract").label == "anchor_market_contract"


class TestInitMessages:
    """Test the init payloads built by the default plan."""

    def _step(self, name):
        return next(step for step in INIT_PLAN if step.name == name)

    def test_product_factory_msg(self):
        msg = self._step("product_factory").build_msg(
            {"subscription_product_code_id": 5, "jobs_registry_contract": "terra1jr"},
            "terra1deployer",
        )
        assert msg["product_code_id"] == 5
        assert msg["job_registry_address"] == "terra1jr"
        assert msg["fee_address"] == "terra1deployer"
        assert msg["min_amount_per_interval"] == "4000000"

    def test_p2p_msg(self):
        msg = self._step("p2p").build_msg({"jobs_registry_contract": "terra1jr"}, "terra1d")
        assert msg["job_registry_contract"] == "terra1jr"
        assert msg["minimum_interval"] == 86400
        assert "fee_address" not in msg

    def test_market_config_step(self):
        step = self._step("stub_anchor_config")
        deps = {"stub_anchor_contract": "terra1m", "aterra_token_contract": "terra1a"}
        assert step.build_msg(deps, "terra1d") == {
            "update_config": {"aterra_contract": "terra1a"}
        }
        assert step.config_updates(deps) == {
            "anchor_market_contract": "terra1m",
            "aterra_token_contract": "terra1a",
        }


class TestLinks:
    """Test the link table."""

    def test_link_msg(self):
        link = LinkStep("jobs_registry", "p2p", "p2p")
        assert link.key == "jobs_registry:p2p"
        assert link.build_msg("terra1p2p") == {
            "add_job": {"contract_address": "terra1p2p", "name": "p2p"}
        }

    def test_links_need_both_contracts(self):
        assert resolve_links({"jobs_registry": "jobs_registry"}) == []
        assert len(resolve_links(resolve_descriptors("localterra"))) == 1

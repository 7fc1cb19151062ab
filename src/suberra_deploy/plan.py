"""Declared instantiation order, cross-contract dependencies and link table."""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Tuple, Union

from .constants import (
    ANCHOR_MARKET_KEY,
    ATERRA_TOKEN_KEY,
    LOCAL_ATERRA_TOKEN,
    P2P_PARAMS,
    PRODUCT_FACTORY_PARAMS,
)
from .exceptions import UnknownContractError

CODE_ID = "code_id"
CONTRACT = "contract"
CONFIG = "config"

# Contracts that are uploaded for their code id only; factories instantiate them
CODE_ONLY = frozenset({"subwallet", "subscription_product"})


@dataclass(frozen=True)
class Requirement:
    """A value that must exist before a step can run."""

    kind: str  # CODE_ID, CONTRACT or CONFIG
    name: str  # contract name, or config key for CONFIG

    @property
    def label(self) -> str:
        if self.kind == CONFIG:
            return self.name
        return f"{self.name}_{self.kind}"


def code_id_of(name: str) -> Requirement:
    return Requirement(CODE_ID, name)


def contract_of(name: str) -> Requirement:
    return Requirement(CONTRACT, name)


def config_value(key: str) -> Requirement:
    return Requirement(CONFIG, key)


MsgBuilder = Callable[[Dict[str, Any], str], Dict[str, Any]]


def _empty_msg(deps: Dict[str, Any], deployer: str) -> Dict[str, Any]:
    return {}


@dataclass(frozen=True)
class InstantiateStep:
    """
    Instantiate ``name`` once every requirement is available.

    ``build_msg`` gets the resolved requirements keyed by ``Requirement.label``
    and the deployer address.
    """

    name: str
    build_msg: MsgBuilder = _empty_msg
    requires: Tuple[Requirement, ...] = ()


@dataclass(frozen=True)
class ConfigureStep:
    """
    Execute a follow-up configuration call on ``target`` after the contracts it
    wires together exist, then store ``config_updates`` in the network config
    document. The stored values double as the "already done" marker.
    """

    name: str
    target: str
    build_msg: MsgBuilder
    config_updates: Callable[[Dict[str, Any]], Dict[str, Any]]
    requires: Tuple[Requirement, ...] = ()


@dataclass(frozen=True)
class LinkStep:
    """Register ``contract`` under ``job_name`` in the ``registry`` contract."""

    registry: str
    contract: str
    job_name: str

    @property
    def key(self) -> str:
        return f"{self.registry}:{self.contract}"

    def build_msg(self, contract_address: str) -> Dict[str, Any]:
        return {"add_job": {"contract_address": contract_address, "name": self.job_name}}


Step = Union[InstantiateStep, ConfigureStep]


def _aterra_token_msg(deps: Dict[str, Any], deployer: str) -> Dict[str, Any]:
    market = deps["stub_anchor_contract"]
    return {
        "name": LOCAL_ATERRA_TOKEN["name"],
        "symbol": LOCAL_ATERRA_TOKEN["symbol"],
        "decimals": LOCAL_ATERRA_TOKEN["decimals"],
        "initial_balances": [
            {"address": market, "amount": LOCAL_ATERRA_TOKEN["initial_balance"]}
        ],
        "mint": {"minter": market},
    }


def _market_update_msg(deps: Dict[str, Any], deployer: str) -> Dict[str, Any]:
    return {"update_config": {"aterra_contract": deps["aterra_token_contract"]}}


def _market_config(deps: Dict[str, Any]) -> Dict[str, Any]:
    return {
        ANCHOR_MARKET_KEY: deps["stub_anchor_contract"],
        ATERRA_TOKEN_KEY: deps["aterra_token_contract"],
    }


def _subwallet_factory_msg(deps: Dict[str, Any], deployer: str) -> Dict[str, Any]:
    return {
        "subwallet_code_id": deps["subwallet_code_id"],
        "anchor_market_contract": deps[ANCHOR_MARKET_KEY],
        "aterra_token_addr": deps[ATERRA_TOKEN_KEY],
    }


def _product_factory_msg(deps: Dict[str, Any], deployer: str) -> Dict[str, Any]:
    return {
        "product_code_id": deps["subscription_product_code_id"],
        **PRODUCT_FACTORY_PARAMS,
        "fee_address": deployer,
        "job_registry_address": deps["jobs_registry_contract"],
    }


def _p2p_msg(deps: Dict[str, Any], deployer: str) -> Dict[str, Any]:
    # fee_address omitted: the contract defaults it to the deployer
    return {**P2P_PARAMS, "job_registry_contract": deps["jobs_registry_contract"]}


INIT_PLAN: Tuple[Step, ...] = (
    InstantiateStep("jobs_registry"),
    InstantiateStep("stub_anchor"),
    InstantiateStep(
        "aterra_token", _aterra_token_msg, (contract_of("stub_anchor"),)
    ),
    ConfigureStep(
        "stub_anchor_config",
        target="stub_anchor",
        build_msg=_market_update_msg,
        config_updates=_market_config,
        requires=(contract_of("stub_anchor"), contract_of("aterra_token")),
    ),
    InstantiateStep(
        "subwallet_factory",
        _subwallet_factory_msg,
        (
            code_id_of("subwallet"),
            config_value(ANCHOR_MARKET_KEY),
            config_value(ATERRA_TOKEN_KEY),
        ),
    ),
    InstantiateStep(
        "product_factory",
        _product_factory_msg,
        (code_id_of("subscription_product"), contract_of("jobs_registry")),
    ),
    InstantiateStep("p2p", _p2p_msg, (contract_of("jobs_registry"),)),
    InstantiateStep("token_stream"),
)

LINKS: Tuple[LinkStep, ...] = (LinkStep("jobs_registry", "p2p", "p2p"),)


def _owner(step: Step) -> str:
    return step.target if isinstance(step, ConfigureStep) else step.name


def resolve_plan(
    descriptors: Mapping[str, str],
    plan: Iterable[Step] = INIT_PLAN,
    code_only: Iterable[str] = CODE_ONLY,
) -> List[Step]:
    """
    Select the steps that apply to a descriptor set.

    Steps for contracts outside the descriptor set are dropped. Descriptors the
    plan does not mention (and that are not code-only) get an empty-payload
    instantiate step appended in descriptor order.

    Raises:
        UnknownContractError: If a kept step requires a contract outside the set
    """
    names = list(dict.fromkeys(descriptors.values()))
    known = set(names)
    code_only = set(code_only)

    resolved: List[Step] = []
    planned = set()
    for step in plan:
        owner = _owner(step)
        planned.add(owner)
        if owner not in known:
            continue
        for req in step.requires:
            if req.kind != CONFIG and req.name not in known:
                raise UnknownContractError(
                    f"Step '{step.name}' requires unknown contract '{req.name}'"
                )
        resolved.append(step)

    for name in names:
        if name not in planned and name not in code_only:
            resolved.append(InstantiateStep(name))

    return resolved


def resolve_links(
    descriptors: Mapping[str, str], links: Iterable[LinkStep] = LINKS
) -> List[LinkStep]:
    """Keep the links whose registry and contract are both in the descriptor set."""
    known = set(descriptors.values())
    return [link for link in links if link.registry in known and link.contract in known]

"""Post-deployment actions: demo user/merchant flows and metadata URI updates.

Every action is skip-if-already-done and logs its failures instead of raising,
so one broken action never stops the next.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .constants import ANCHOR_MARKET_KEY, FEE_DENOM
from .contracts import ContractClient
from .deployer import describe_error
from .exceptions import DeploymentError
from .messages import Msg, coin, execute_msg, send_msg, to_encoded_binary
from .state import DeploymentState

logger = logging.getLogger(__name__)

# High allowance granted to a subscription product (2**53 - 1)
MAX_ALLOWANCE = 9007199254740991


def get_subwallet(client: ContractClient, subwallet_factory: str, owner: str) -> Optional[str]:
    if not owner:
        raise ValueError("owner address cannot be empty")
    return client.query(subwallet_factory, {"get_subwallet_address": {"owner_address": owner}})


def get_created_products(client: ContractClient, product_factory: str, owner: str) -> List[str]:
    if not owner:
        raise ValueError("owner address cannot be empty")
    result = client.query(product_factory, {"products_by_owner": {"owner": owner}}) or {}
    return list(result.get("products") or [])


def is_subscribed(client: ContractClient, subscription_contract: str, subwallet: str) -> bool:
    try:
        result = client.query(subscription_contract, {"subscription": {"subscriber": subwallet}})
    except DeploymentError:
        return False
    return bool((result or {}).get("is_active"))


def create_subscribe_msgs(
    wallet: str, subwallet: str, subscription_contract: str
) -> List[Msg]:
    """Allowance + subscribe, executed through the subwallet in one transaction."""
    increase_allowance = execute_msg(
        wallet,
        subwallet,
        {
            "increase_allowance": {
                "spender": subscription_contract,
                "amount": coin(FEE_DENOM, MAX_ALLOWANCE),
            }
        },
    )
    subscribe = execute_msg(
        wallet,
        subwallet,
        {
            "execute": {
                "msgs": [
                    {
                        "wasm": {
                            "execute": {
                                "funds": [],
                                "contract_addr": subscription_contract,
                                "msg": to_encoded_binary({"subscribe": {}}),
                            }
                        }
                    }
                ]
            }
        },
    )
    return [increase_allowance, subscribe]


def create_subwallet(client: ContractClient, state: DeploymentState) -> Optional[str]:
    """Create a subwallet for the deployer unless one exists. Returns its address."""
    logger.info("4. Create subwallet")
    factory = state.contract("subwallet_factory")
    if not factory:
        logger.warning("\tNo subwallet_factory deployed, skipping")
        return None
    try:
        existing = get_subwallet(client, factory, client.address)
        if existing:
            logger.info("\tSubwallet %s already exists, skipping", existing)
            return existing

        logger.info("\tCreating subwallet for deployer: %s", client.address)
        tx = client.execute(factory, {"create_account": {}})
        logger.info("\t\tTx: %s", tx.txhash)

        subwallet = get_subwallet(client, factory, client.address)
        logger.info("\t\tSubwallet address = %s", subwallet)
        return subwallet
    except DeploymentError as e:
        logger.error("\tFailed to create subwallet: %s", describe_error(e))
        return None


def deposit_subwallet(
    client: ContractClient,
    state: DeploymentState,
    network_config: Dict[str, Any],
    amount_usd: int = 20,
) -> Optional[str]:
    """Send ``amount_usd`` to the deployer's subwallet and deposit it into the market."""
    logger.info("5. Deposit funds to subwallet")
    factory = state.contract("subwallet_factory")
    market = network_config.get(ANCHOR_MARKET_KEY)
    if not factory or not market:
        logger.warning("\tMissing subwallet_factory or %s, skipping", ANCHOR_MARKET_KEY)
        return None
    try:
        subwallet = get_subwallet(client, factory, client.address)
        if not subwallet:
            logger.info("\tNo subwallet exists, skipping")
            return None

        amount = amount_usd * 1_000_000
        available = client.balance(client.address)
        if available < amount:
            logger.warning("\tDeployer holds %s%s, need %s, skipping", available, FEE_DENOM, amount)
            return None

        logger.info("\tDepositing $%s into subwallet: %s", amount_usd, subwallet)
        funds = coin(FEE_DENOM, amount)
        transfer = send_msg(client.address, subwallet, [funds])
        anchor_deposit = execute_msg(
            client.address,
            subwallet,
            {
                "execute": {
                    "msgs": [
                        {
                            "wasm": {
                                "execute": {
                                    "funds": [funds],
                                    "contract_addr": market,
                                    "msg": to_encoded_binary({"deposit_stable": {}}),
                                }
                            }
                        }
                    ]
                }
            },
        )
        tx = client.submitter.submit([transfer, anchor_deposit])
        logger.info("\t\tDeposited! Tx: %s", tx.txhash)
        return tx.txhash
    except DeploymentError as e:
        logger.error("\tFailed to deposit into subwallet: %s", describe_error(e))
        return None


def create_subscription_product(client: ContractClient, state: DeploymentState) -> Optional[str]:
    """Create a $10/hour product owned by the deployer unless one exists."""
    logger.info("6. Create subscription product")
    factory = state.contract("product_factory")
    if not factory:
        logger.warning("\tNo product_factory deployed, skipping")
        return None
    try:
        existing = get_created_products(client, factory, client.address)
        if existing:
            logger.info("\tProduct %s already exists, skipping", existing[0])
            return existing[0]

        logger.info("\tCreating product for deployer: %s", client.address)
        tx = client.execute(
            factory,
            {
                "create_product": {
                    "product_info": {
                        "receiver_address": client.address,
                        "unit_amount": "10000000",
                        "initial_amount": "1000000",
                        "unit_interval_hour": 1,
                        "additional_grace_period_hour": 1,
                        "uri": "",
                        "admins": [client.address],
                        "mutable": True,
                    }
                }
            },
        )
        logger.info("\t\tTx: %s", tx.txhash)
        products = get_created_products(client, factory, client.address)
        logger.info("\t\tProducts = %s", products)
        return products[0] if products else None
    except DeploymentError as e:
        logger.error("\tFailed to create product: %s", describe_error(e))
        return None


def subscribe_to_product(client: ContractClient, state: DeploymentState) -> Optional[str]:
    """Subscribe the deployer's subwallet to the deployer's first product."""
    logger.info("7. Subscribe to subscription product")
    product_factory = state.contract("product_factory")
    subwallet_factory = state.contract("subwallet_factory")
    if not product_factory or not subwallet_factory:
        logger.warning("\tMissing product_factory or subwallet_factory, skipping")
        return None
    try:
        products = get_created_products(client, product_factory, client.address)
        if not products:
            logger.info("\tNo product exists, skipping")
            return None
        product = products[0]

        subwallet = get_subwallet(client, subwallet_factory, client.address)
        if not subwallet:
            logger.info("\tNo subwallet exists, skipping")
            return None

        if is_subscribed(client, product, subwallet):
            logger.info("\tSubwallet already subscribed, skipping")
            return None

        logger.info("\tSubscribing %s to product %s", subwallet, product)
        tx = client.submitter.submit(create_subscribe_msgs(client.address, subwallet, product))
        logger.info("\t\tSubscribed! Tx: %s", tx.txhash)
        return tx.txhash
    except DeploymentError as e:
        logger.error("\tFailed to subscribe: %s", describe_error(e))
        return None


def run_demo(
    client: ContractClient, state: DeploymentState, network_config: Dict[str, Any]
) -> None:
    """Exercise the deployed contracts as a user and merchant would."""
    create_subwallet(client, state)
    deposit_subwallet(client, state, network_config)
    create_subscription_product(client, state)
    subscribe_to_product(client, state)


def update_uri(
    client: ContractClient, contracts: Iterable[str], uri_template: str
) -> Dict[str, Optional[str]]:
    """
    Point each product contract's metadata URI at ``uri_template``.

    ``<contract>`` in the template is replaced by the contract address.

    Returns:
        Mapping of contract address -> tx hash (None where the update failed)
    """
    results: Dict[str, Optional[str]] = {}
    for contract in contracts:
        uri = uri_template.replace("<contract>", contract)
        logger.info("\tUpdating %s uri to %s", contract, uri)
        try:
            tx = client.execute(contract, {"update_config": {"uri": uri}})
        except DeploymentError as e:
            logger.error("\t\tFailed to update %s: %s", contract, describe_error(e))
            results[contract] = None
            continue
        logger.info("\t\tUpdated! Tx: %s", tx.txhash)
        results[contract] = tx.txhash
    return results

"""Contract descriptor tables: compiled artifact name -> logical contract name."""

from types import MappingProxyType
from typing import Dict, Mapping, Optional

from .constants import LOCAL_NETWORK

# admin_core is omitted as it's compiled into other contracts
SUBERRA_CONTRACTS: Mapping[str, str] = MappingProxyType(
    {
        "jobs_registry": "jobs_registry",
        "subwallet": "subwallet",
        "product_factory": "product_factory",
        "sub1_fixed_recurring_subscriptions": "subscription_product",
        "sub2_p2p_recurring_transfers": "p2p",
        "subwallet_factory": "subwallet_factory",
        "token_stream": "token_stream",
    }
)

# Stand-ins for the externally deployed Anchor market and aUST token
LOCAL_STUB_CONTRACTS: Mapping[str, str] = MappingProxyType(
    {
        "stub_anchor": "stub_anchor",
        "astroport_token": "aterra_token",
    }
)


def resolve_descriptors(
    network: str,
    base: Optional[Mapping[str, str]] = None,
) -> Mapping[str, str]:
    """
    Build the descriptor set for one run on a network.

    The base table is never mutated; local sandbox networks get the stub
    descriptors appended.

    Args:
        network: Network identity
        base: Artifact -> contract name table (defaults to SUBERRA_CONTRACTS)

    Returns:
        Read-only mapping of artifact name -> contract name, in upload order

    Raises:
        ValueError: If two artifacts map to the same contract name
    """
    if base is None:
        base = SUBERRA_CONTRACTS

    resolved: Dict[str, str] = dict(base)
    if network == LOCAL_NETWORK:
        resolved.update(LOCAL_STUB_CONTRACTS)

    names = list(resolved.values())
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Contract names mapped by more than one artifact: {duplicates}")

    return MappingProxyType(resolved)


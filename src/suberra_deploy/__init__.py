"""
suberra-deploy: idempotent deployment of the Suberra contracts to Terra networks
"""

from importlib.metadata import PackageNotFoundError, version

from .config import DeployConfig
from .contracts import ContractClient
from .deployer import Deployer, DeploymentReport, StepStatus
from .descriptors import SUBERRA_CONTRACTS, resolve_descriptors
from .exceptions import (
    ArtifactNotFoundError,
    ConfigError,
    DeploymentError,
    MalformedResponseError,
    RunBudgetExceededError,
    SigningError,
    StateInvariantError,
    TransactionError,
    TransportError,
    UnknownContractError,
)
from .state import DeploymentState, NetworkStateStore
from .transactions import TransactionSubmitter, TxResult

try:
    __version__ = version("suberra-deploy")
except PackageNotFoundError:
    __version__ = None

__all__ = [
    "Deployer",
    "DeploymentReport",
    "StepStatus",
    "DeployConfig",
    "ContractClient",
    "TransactionSubmitter",
    "TxResult",
    "NetworkStateStore",
    "DeploymentState",
    "SUBERRA_CONTRACTS",
    "resolve_descriptors",
    "DeploymentError",
    "ConfigError",
    "TransportError",
    "TransactionError",
    "MalformedResponseError",
    "UnknownContractError",
    "StateInvariantError",
    "ArtifactNotFoundError",
    "SigningError",
    "RunBudgetExceededError",
]

"""Custom exception classes for suberra-deploy."""

from typing import Any, Optional


class DeploymentError(Exception):
    """Base exception for deployment-related errors."""

    pass


class ConfigError(DeploymentError, ValueError):
    """Raised when deployment configuration is missing or invalid."""

    pass


class TransportError(DeploymentError, ConnectionError):
    """
    Raised when the LCD endpoint cannot be reached or answers with an HTTP error.

    The decoded response body (or raw text) is kept in ``payload`` when the
    server sent one.
    """

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.payload = payload


class TransactionError(DeploymentError, RuntimeError):
    """Raised when the ledger ran a transaction and it reverted."""

    def __init__(
        self,
        code: int,
        codespace: Optional[str],
        raw_log: str,
        txhash: Optional[str] = None,
    ):
        super().__init__(
            f"transaction failed: code={code} codespace={codespace} raw_log={raw_log}"
        )
        self.code = code
        self.codespace = codespace
        self.raw_log = raw_log
        self.txhash = txhash


class MalformedResponseError(DeploymentError, ValueError):
    """Raised when a successful response lacks an expected field."""

    pass


class UnknownContractError(DeploymentError, ValueError):
    """Raised when a contract name is not part of the resolved descriptor set."""

    pass


class StateInvariantError(DeploymentError, ValueError):
    """Raised when a state update would break the deployment record invariants."""

    pass


class ArtifactNotFoundError(DeploymentError, FileNotFoundError):
    """Raised when a compiled contract artifact is missing."""

    pass


class SigningError(DeploymentError, RuntimeError):
    """Raised when the signing collaborator fails to produce a signed transaction."""

    pass


class RunBudgetExceededError(DeploymentError, TimeoutError):
    """Raised when a deployment run exceeds its overall time budget."""

    pass

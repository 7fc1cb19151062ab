"""Deployment configuration for suberra-deploy."""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from dotenv import find_dotenv, load_dotenv

from .constants import (
    DEFAULT_ARTIFACTS_DIR,
    DEFAULT_CONFIRM_TIMEOUT,
    DEFAULT_GAS_LIMIT,
    DEFAULT_GAS_PRICE,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SETTLE_DELAY,
    DEFAULT_SIGNER_BINARY,
    FEE_DENOM,
    LOCAL_NETWORK,
    NETWORK_CONFIG,
)
from .exceptions import ConfigError
from .paths import get_default_state_dir


def load_env_file(path: Optional[Union[str, Path]] = None) -> bool:
    """
    Load a ``.env`` file into the process environment.

    Variables already set in the environment are left untouched.

    Args:
        path: Explicit file (defaults to the nearest ``.env`` from the working directory)

    Returns:
        True if a file was found and loaded
    """
    if path is None:
        path = find_dotenv(usecwd=True)
    return load_dotenv(path, override=False)


@dataclass(frozen=True)
class DeployConfig:
    """Settings for one deployment run against one network."""

    network: str  # chain id, the network identity
    lcd_url: str
    artifacts_dir: Path
    state_dir: Path
    deployer_key: Optional[str] = None
    signer_binary: str = DEFAULT_SIGNER_BINARY
    settle_delay: float = DEFAULT_SETTLE_DELAY
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    confirm_timeout: float = DEFAULT_CONFIRM_TIMEOUT
    run_budget: Optional[float] = None  # None means unbounded
    gas_price: float = DEFAULT_GAS_PRICE
    gas_limit: int = DEFAULT_GAS_LIMIT
    fee_denom: str = field(default=FEE_DENOM, init=False)

    @property
    def is_local(self) -> bool:
        return self.network == LOCAL_NETWORK

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "DeployConfig":
        """
        Build configuration from environment variables.

        Args:
            environ: Environment mapping (defaults to os.environ)
            **overrides: Explicit values (e.g. from CLI flags); None values are ignored

        Returns:
            DeployConfig

        Raises:
            ConfigError: If a value is malformed or the LCD URL cannot be determined
        """
        if environ is None:
            environ = os.environ

        network = environ.get("CHAIN_ID", LOCAL_NETWORK)
        if overrides.get("network"):
            network = overrides["network"]

        lcd_url = environ.get("LCD_CLIENT_URL") or NETWORK_CONFIG.get(network, {}).get("lcd_url")

        config = cls(
            network=network,
            lcd_url=lcd_url or "",
            artifacts_dir=Path(environ.get("SUBERRA_ARTIFACTS_DIR", DEFAULT_ARTIFACTS_DIR)),
            state_dir=Path(environ.get("SUBERRA_STATE_DIR", str(get_default_state_dir()))),
            deployer_key=environ.get("DEPLOYER_KEY"),
            signer_binary=environ.get("SIGNER_BINARY", DEFAULT_SIGNER_BINARY),
            settle_delay=_float(environ, "SUBERRA_SETTLE_DELAY", DEFAULT_SETTLE_DELAY),
            request_timeout=_float(environ, "SUBERRA_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            confirm_timeout=_float(environ, "SUBERRA_CONFIRM_TIMEOUT", DEFAULT_CONFIRM_TIMEOUT),
            run_budget=_float(environ, "SUBERRA_RUN_BUDGET", None),
            gas_price=_float(environ, "SUBERRA_GAS_PRICE", DEFAULT_GAS_PRICE),
            gas_limit=int(_float(environ, "SUBERRA_GAS_LIMIT", DEFAULT_GAS_LIMIT)),
        )

        explicit = {k: v for k, v in overrides.items() if v is not None and k != "network"}
        for key in ("artifacts_dir", "state_dir"):
            if key in explicit:
                explicit[key] = Path(explicit[key])
        if explicit:
            config = replace(config, **explicit)

        if not config.lcd_url:
            raise ConfigError(
                f"No LCD URL known for network '{network}': set $LCD_CLIENT_URL"
            )
        for name in ("settle_delay", "request_timeout", "confirm_timeout"):
            if getattr(config, name) < 0:
                raise ConfigError(f"{name} must not be negative")
        if config.run_budget is not None and config.run_budget <= 0:
            raise ConfigError("run_budget must be positive")

        return config


def _float(environ: Mapping[str, str], name: str, default: Optional[float]) -> Optional[float]:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"${name} must be a number, got {raw!r}") from e

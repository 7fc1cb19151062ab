"""Path management utilities for suberra-deploy."""

from pathlib import Path
from typing import Optional, Union


def get_default_state_dir() -> Path:
    """
    Get default state directory.

    Returns:
        Path to ./.suberra-deploy
    """
    return Path.cwd() / ".suberra-deploy"


def get_state_paths(
    network: str, state_root: Optional[Union[Path, str]] = None
) -> tuple[Path, Path]:
    """
    Get state file paths for a network.

    Args:
        network: Network identity (chain id)
        state_root: Custom state directory (defaults to ./.suberra-deploy)

    Returns:
        Tuple of (network_state_path, config_path)
    """
    if not network:
        raise ValueError("network identity is required")

    if state_root is None:
        state_root = get_default_state_dir()
    else:
        state_root = Path(state_root).absolute()

    return (state_root / f"{network}.json", state_root / "config.json")


def artifact_path(artifacts_dir: Union[Path, str], artifact_name: str) -> Path:
    """Return the path of a compiled artifact: {artifacts_dir}/{artifact_name}.wasm."""
    return Path(artifacts_dir) / f"{artifact_name}.wasm"

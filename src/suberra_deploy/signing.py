"""Signing collaborators: turn an unsigned transaction into broadcastable bytes."""

import json
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from .exceptions import SigningError


class Signer(Protocol):
    """Anything that holds a deployer key and can sign transactions with it."""

    @property
    def address(self) -> str: ...

    def sign(self, tx: Dict[str, Any], account_number: int, sequence: int) -> str:
        """Return the base64 encoded signed transaction bytes."""
        ...


class CliSigner:
    """
    Signs with the chain's own binary (e.g. ``terrad``) and its local keyring.

    Key material never leaves the keyring; this class only shells out to
    ``keys show``, ``tx sign --offline`` and ``tx encode``.
    """

    def __init__(
        self,
        key_name: str,
        chain_id: str,
        binary: str = "terrad",
        keyring_backend: Optional[str] = None,
        home: Optional[str] = None,
    ):
        self.key_name = key_name
        self.chain_id = chain_id
        self.binary = binary
        self.keyring_backend = keyring_backend
        self.home = home
        self._address: Optional[str] = None

    def _common_flags(self) -> List[str]:
        flags = []
        if self.keyring_backend:
            flags += ["--keyring-backend", self.keyring_backend]
        if self.home:
            flags += ["--home", self.home]
        return flags

    def _run(self, args: List[str]) -> str:
        try:
            result = subprocess.run(
                [self.binary, *args],
                check=True,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise SigningError(f"Signer binary '{self.binary}' not found") from e
        except subprocess.CalledProcessError as e:
            raise SigningError(
                f"'{self.binary} {' '.join(args[:2])}' failed: {e.stderr.strip()}"
            ) from e
        return result.stdout.strip()

    @property
    def address(self) -> str:
        if self._address is None:
            self._address = self._run(
                ["keys", "show", self.key_name, "-a", *self._common_flags()]
            )
        return self._address

    def sign(self, tx: Dict[str, Any], account_number: int, sequence: int) -> str:
        with tempfile.TemporaryDirectory() as tmp_dir:
            unsigned = Path(tmp_dir) / "unsigned.json"
            signed = Path(tmp_dir) / "signed.json"
            unsigned.write_text(json.dumps(tx))

            self._run(
                [
                    "tx", "sign", str(unsigned),
                    "--from", self.key_name,
                    "--chain-id", self.chain_id,
                    "--offline",
                    "--account-number", str(account_number),
                    "--sequence", str(sequence),
                    "--output-document", str(signed),
                    *self._common_flags(),
                ]
            )
            tx_bytes = self._run(["tx", "encode", str(signed)])

        if not tx_bytes:
            raise SigningError("Signer produced empty transaction bytes")
        return tx_bytes

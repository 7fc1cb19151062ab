"""Command-line entry point: ``suberra-deploy``."""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .actions import run_demo, update_uri
from .config import DeployConfig, load_env_file
from .contracts import ContractClient
from .deployer import Deployer
from .exceptions import ConfigError, DeploymentError
from .lcd import LcdClient
from .signing import CliSigner
from .state import NetworkStateStore
from .transactions import TransactionSubmitter

logger = logging.getLogger(__name__)


def build_client(config: DeployConfig) -> ContractClient:
    """Wire LCD client, signer and submitter for the configured network."""
    if not config.deployer_key:
        raise ConfigError("Deployer key required: set $DEPLOYER_KEY or pass --key")

    lcd = LcdClient(config.lcd_url, config.network, timeout=config.request_timeout)
    signer = CliSigner(config.deployer_key, config.network, binary=config.signer_binary)
    submitter = TransactionSubmitter(
        lcd,
        signer,
        gas_price=config.gas_price,
        gas_limit=config.gas_limit,
        fee_denom=config.fee_denom,
        settle_delay=config.settle_delay,
        confirm_timeout=config.confirm_timeout,
    )
    return ContractClient(submitter)


def build_deployer(config: DeployConfig, client: ContractClient) -> Deployer:
    return Deployer(
        client,
        NetworkStateStore(config.state_dir),
        config.network,
        artifacts_dir=config.artifacts_dir,
        run_budget=config.run_budget,
    )


def _parse_cli(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="suberra-deploy",
        description="Upload, instantiate and link the Suberra contracts on a network.",
    )
    p.add_argument("--network", help="Chain id (default: $CHAIN_ID or localterra)")
    p.add_argument("--lcd-url", help="LCD endpoint (default: $LCD_CLIENT_URL)")
    p.add_argument("--key", dest="deployer_key", help="Signer key name (default: $DEPLOYER_KEY)")
    p.add_argument("--artifacts-dir", help="Directory holding <artifact>.wasm files")
    p.add_argument("--state-dir", help="Directory holding per-network state files")
    p.add_argument("--settle-delay", type=float, help="Seconds to wait after broadcast")
    p.add_argument("--run-budget", type=float, help="Overall time budget in seconds")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = p.add_subparsers(dest="command")

    deploy = sub.add_parser("deploy", help="Upload, init and link contracts (default)")
    deploy.add_argument("--demo", action="store_true", help="Run demo user/merchant actions")

    sub.add_parser("show", help="Print the recorded state and network config")

    migrate = sub.add_parser("migrate", help="Upload new code for a contract and migrate it")
    migrate.add_argument("name", help="Logical contract name")
    migrate.add_argument("--artifact", help="Path to the new .wasm artifact")
    migrate.add_argument("--msg", default="{}", help="Migration message as JSON")

    uri = sub.add_parser("update-uri", help="Update the metadata URI of product contracts")
    uri.add_argument("uri_template", help="URI with <contract> as address placeholder")
    uri.add_argument("contracts", nargs="+", help="Contract addresses")

    args = p.parse_args(argv)
    if args.command is None:
        args.command = "deploy"
        args.demo = False
    return args


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_cli(argv)
    load_env_file()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = DeployConfig.from_env(
            network=args.network,
            lcd_url=args.lcd_url,
            deployer_key=args.deployer_key,
            artifacts_dir=args.artifacts_dir,
            state_dir=args.state_dir,
            settle_delay=args.settle_delay,
            run_budget=args.run_budget,
        )

        if args.command == "show":
            store = NetworkStateStore(config.state_dir)
            print(
                json.dumps(
                    {"state": store.read(config.network), "config": store.read_config(config.network)},
                    indent=2,
                )
            )
            return 0

        client = build_client(config)
        deployer = build_deployer(config, client)

        match args.command:
            case "deploy":
                report = deployer.run()
                if args.demo:
                    run_demo(client, deployer.load_state(), deployer.store.read_config(config.network))
                if not report.ok:
                    logger.warning("Some steps failed; re-run to resume once fixed")
            case "migrate":
                deployer.migrate_contract(
                    args.name, artifact=args.artifact, migrate_msg=json.loads(args.msg)
                )
            case "update-uri":
                update_uri(client, args.contracts, args.uri_template)

    except json.JSONDecodeError as e:
        logger.error("Invalid --msg JSON: %s", e)
        return 2
    except DeploymentError as e:
        logger.error("Deployment aborted: %s", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

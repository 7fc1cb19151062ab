"""Idempotent multi-contract deployment: upload, instantiate, link."""

import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .constants import DEFAULT_ARTIFACTS_DIR
from .contracts import ContractClient
from .descriptors import resolve_descriptors
from .exceptions import (
    DeploymentError,
    RunBudgetExceededError,
    StateInvariantError,
    TransactionError,
    TransportError,
)
from .paths import artifact_path
from .plan import (
    CODE_ID,
    CONFIG,
    INIT_PLAN,
    LINKS,
    ConfigureStep,
    InstantiateStep,
    LinkStep,
    Requirement,
    Step,
    resolve_links,
    resolve_plan,
)
from .state import DeploymentState, NetworkStateStore

logger = logging.getLogger(__name__)


class Phase(Enum):
    UPLOAD = "upload"
    INSTANTIATE = "instantiate"
    LINK = "link"


class StepStatus(Enum):
    """Outcome of one step. Value strings appear in reports and logs."""

    DONE = "done"
    ALREADY_DONE = "already-done"
    MISSING_PRECONDITION = "missing-precondition"
    FAILED = "failed"


@dataclass
class StepOutcome:
    phase: Phase
    name: str
    status: StepStatus
    value: Any = None  # code id, address or tx hash
    detail: str = ""


@dataclass
class DeploymentReport:
    """Everything that happened during one run, in execution order."""

    network: str
    outcomes: List[StepOutcome] = field(default_factory=list)

    def add(
        self,
        phase: Phase,
        name: str,
        status: StepStatus,
        value: Any = None,
        detail: str = "",
    ) -> StepOutcome:
        outcome = StepOutcome(phase, name, status, value, detail)
        self.outcomes.append(outcome)
        return outcome

    def get(self, phase: Phase, name: str) -> Optional[StepOutcome]:
        for outcome in reversed(self.outcomes):
            if outcome.phase is phase and outcome.name == name:
                return outcome
        return None

    def with_status(self, status: StepStatus) -> List[StepOutcome]:
        return [o for o in self.outcomes if o.status is status]

    @property
    def ok(self) -> bool:
        return not self.with_status(StepStatus.FAILED)

    def summary(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for outcome in self.outcomes:
            counts[outcome.status.value] = counts.get(outcome.status.value, 0) + 1
        return counts


class RunBudget:
    """Overall time allowance for a run; checked before every network step."""

    def __init__(
        self, seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic
    ):
        self.seconds = seconds
        self._clock = clock
        self._started = clock()

    @property
    def remaining(self) -> Optional[float]:
        if self.seconds is None:
            return None
        return self.seconds - (self._clock() - self._started)

    def check(self, step: str) -> None:
        remaining = self.remaining
        if remaining is not None and remaining <= 0:
            raise RunBudgetExceededError(
                f"Run budget of {self.seconds}s exhausted before {step}"
            )


def describe_error(error: Exception) -> str:
    """Render an error with the diagnostic context needed to resume by hand."""
    if isinstance(error, TransactionError):
        return (
            f"tx {error.txhash} failed: code={error.code} "
            f"codespace={error.codespace} raw_log={error.raw_log}"
        )
    if isinstance(error, TransportError) and error.payload is not None:
        return f"{error} payload={json.dumps(error.payload, default=str)}"
    return str(error)


class Deployer:
    """
    Drives every contract of a network through upload, instantiate and link.

    All progress lives in the NetworkStateStore; the deployer itself holds no
    state between runs, so a run can be killed and restarted at any time.
    """

    def __init__(
        self,
        client: ContractClient,
        store: NetworkStateStore,
        network: str,
        descriptors: Optional[Mapping[str, str]] = None,
        artifacts_dir: Union[str, Path] = DEFAULT_ARTIFACTS_DIR,
        plan: Optional[Iterable[Step]] = None,
        links: Optional[Iterable[LinkStep]] = None,
        run_budget: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.store = store
        self.network = network
        self.descriptors = resolve_descriptors(network, descriptors)
        self.artifacts_dir = Path(artifacts_dir)
        self.plan = resolve_plan(self.descriptors, INIT_PLAN if plan is None else plan)
        self.links = resolve_links(self.descriptors, LINKS if links is None else links)
        self.budget = RunBudget(run_budget, clock)

    def load_state(self) -> DeploymentState:
        return self.store.load(self.network, self.descriptors.values())

    def run(self) -> DeploymentReport:
        """
        Upload, instantiate and link every contract.

        Returns:
            DeploymentReport of all steps

        Raises:
            DeploymentError: If any upload fails (nothing after it is attempted)
            RunBudgetExceededError: If the run budget runs out
        """
        report = DeploymentReport(self.network)
        logger.info("Deploying to %s as %s", self.network, self.client.address)

        self.upload_contracts(report)
        self.init_contracts(report)
        logger.info(
            "Deployed contracts on %s: %s",
            self.network,
            json.dumps(self.load_state().as_record(), indent=2),
        )
        self.link_contracts(report)

        logger.info("Run finished on %s: %s", self.network, report.summary())
        return report

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    def upload_contracts(self, report: Optional[DeploymentReport] = None) -> DeploymentReport:
        """
        Upload every artifact that has no recorded code id.

        Each code id is persisted as soon as it is known. The first failure is
        re-raised.
        """
        report = report or DeploymentReport(self.network)
        state = self.load_state()
        logger.info("1. Storing contract code")

        for artifact, name in self.descriptors.items():
            existing = state.code_id(name)
            if existing is not None:
                logger.info("\t%s already uploaded (code_id %s), skipped", artifact, existing)
                report.add(Phase.UPLOAD, name, StepStatus.ALREADY_DONE, existing)
                continue

            self.budget.check(f"uploading {artifact}")
            path = artifact_path(self.artifacts_dir, artifact)
            logger.info("\tUploading %s on %s...", artifact, self.network)
            try:
                code_id = self.client.upload(path)
            except DeploymentError as e:
                logger.error("\tFailed to upload %s: %s", artifact, describe_error(e))
                report.add(Phase.UPLOAD, name, StepStatus.FAILED, detail=describe_error(e))
                raise

            state.set_code_id(name, code_id)
            self.store.save(state)
            logger.info("\t\tuploaded, code_id: %s", code_id)
            report.add(Phase.UPLOAD, name, StepStatus.DONE, code_id)

        return report

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    def init_contracts(self, report: Optional[DeploymentReport] = None) -> DeploymentReport:
        """
        Run the instantiation plan in declared order.

        Missing preconditions and per-contract failures are reported and the
        next step runs anyway.
        """
        report = report or DeploymentReport(self.network)
        logger.info("2. Init contracts")

        for step in self.plan:
            state = self.load_state()
            if isinstance(step, ConfigureStep):
                self._configure(state, step, report)
            else:
                self._instantiate(state, step, report)

        return report

    def _resolve(
        self, state: DeploymentState, requires: Iterable[Requirement]
    ) -> Tuple[Dict[str, Any], List[str]]:
        resolved: Dict[str, Any] = {}
        missing: List[str] = []
        config: Optional[Dict[str, Any]] = None

        for req in requires:
            if req.kind == CONFIG:
                if config is None:
                    config = self.store.read_config(self.network)
                value = config.get(req.name)
            elif req.kind == CODE_ID:
                value = state.code_id(req.name)
            else:
                value = state.contract(req.name)

            if value is None or value == "":
                missing.append(req.label)
            else:
                resolved[req.label] = value

        return resolved, missing

    def _instantiate(
        self, state: DeploymentState, step: InstantiateStep, report: DeploymentReport
    ) -> Optional[str]:
        name = step.name
        existing = state.contract(name)
        if existing:
            logger.info("\t%s already exists! contractAddress = %s", name, existing)
            report.add(Phase.INSTANTIATE, name, StepStatus.ALREADY_DONE, existing)
            return existing

        code_id = state.code_id(name)
        if code_id is None:
            logger.warning("\t%s: code not uploaded, skipped", name)
            report.add(
                Phase.INSTANTIATE, name, StepStatus.MISSING_PRECONDITION,
                detail=f"missing {name}_code_id",
            )
            return None

        deps, missing = self._resolve(state, step.requires)
        if missing:
            logger.warning("\tMissing %s dependencies: %s", name, ", ".join(missing))
            report.add(
                Phase.INSTANTIATE, name, StepStatus.MISSING_PRECONDITION,
                detail=f"missing {', '.join(missing)}",
            )
            return None

        self.budget.check(f"instantiating {name}")
        init_msg = step.build_msg(deps, self.client.address)
        logger.info("\tInitialising %s with msg: %s", name, json.dumps(init_msg))
        try:
            address = self.client.instantiate(
                code_id, init_msg, admin=self.client.address, label=name
            )
        except DeploymentError as e:
            logger.error(
                "\tFailed to instantiate %s with msg %s: %s",
                name, json.dumps(init_msg), describe_error(e),
            )
            report.add(Phase.INSTANTIATE, name, StepStatus.FAILED, detail=describe_error(e))
            return None

        state.set_contract(name, address)
        self.store.save(state)
        logger.info("\t\tDone! contractAddress = %s", address)
        report.add(Phase.INSTANTIATE, name, StepStatus.DONE, address)
        return address

    def _configure(
        self, state: DeploymentState, step: ConfigureStep, report: DeploymentReport
    ) -> None:
        deps, missing = self._resolve(state, step.requires)
        if missing:
            logger.warning("\tSkipping %s, missing: %s", step.name, ", ".join(missing))
            report.add(
                Phase.INSTANTIATE, step.name, StepStatus.MISSING_PRECONDITION,
                detail=f"missing {', '.join(missing)}",
            )
            return

        updates = step.config_updates(deps)
        current = self.store.read_config(self.network)
        if all(current.get(key) == value for key, value in updates.items()):
            logger.info("\t%s already applied, skipped", step.name)
            report.add(Phase.INSTANTIATE, step.name, StepStatus.ALREADY_DONE)
            return

        self.budget.check(f"running {step.name}")
        target = state.contract(step.target)
        msg = step.build_msg(deps, self.client.address)
        logger.info("\tUpdating %s (%s) with msg: %s", step.target, target, json.dumps(msg))
        try:
            tx = self.client.execute(target, msg)
        except DeploymentError as e:
            logger.error(
                "\tFailed to update %s with msg %s: %s",
                step.target, json.dumps(msg), describe_error(e),
            )
            report.add(Phase.INSTANTIATE, step.name, StepStatus.FAILED, detail=describe_error(e))
            return

        self.store.write_config(self.network, {**current, **updates})
        logger.info("\t\tTx: %s", tx.txhash)
        report.add(Phase.INSTANTIATE, step.name, StepStatus.DONE, tx.txhash)

    # ------------------------------------------------------------------
    # Phase 3
    # ------------------------------------------------------------------

    def link_contracts(self, report: Optional[DeploymentReport] = None) -> DeploymentReport:
        """
        Register contracts in their registries.

        Successful links are recorded under ``links`` in the state record and
        skipped on later runs. Failures are reported per link.
        """
        report = report or DeploymentReport(self.network)
        logger.info("3. Linking contracts")

        for link in self.links:
            state = self.load_state()
            done = state.link(link.key)
            if done:
                logger.info("\t%s already linked (tx %s), skipped", link.key, done)
                report.add(Phase.LINK, link.key, StepStatus.ALREADY_DONE, done)
                continue

            registry = state.contract(link.registry)
            contract = state.contract(link.contract)
            if not registry or not contract:
                missing = [
                    f"{n}_contract"
                    for n, v in ((link.registry, registry), (link.contract, contract))
                    if not v
                ]
                logger.warning("\tSkipping link %s, missing: %s", link.key, ", ".join(missing))
                report.add(
                    Phase.LINK, link.key, StepStatus.MISSING_PRECONDITION,
                    detail=f"missing {', '.join(missing)}",
                )
                continue

            self.budget.check(f"linking {link.key}")
            logger.info(
                "\tAdding job %s: %s to registry %s", link.job_name, contract, registry
            )
            try:
                tx = self.client.execute(registry, link.build_msg(contract))
            except DeploymentError as e:
                logger.error("\t\tFailed to register job %s: %s", link.job_name, describe_error(e))
                report.add(Phase.LINK, link.key, StepStatus.FAILED, detail=describe_error(e))
                continue

            state.set_link(link.key, tx.txhash)
            self.store.save(state)
            logger.info("\t\tTx: %s", tx.txhash)
            report.add(Phase.LINK, link.key, StepStatus.DONE, tx.txhash)

        return report

    # ------------------------------------------------------------------
    # Migration
    # ------------------------------------------------------------------

    def migrate_contract(
        self,
        name: str,
        artifact: Optional[Union[str, Path]] = None,
        migrate_msg: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Upload new code for an instantiated contract and migrate it.

        The new code id replaces the recorded one as soon as the upload
        succeeds.

        Args:
            name: Logical contract name
            artifact: Path to the new artifact (defaults to the descriptor's artifact)
            migrate_msg: Migration payload

        Returns:
            Migration tx hash

        Raises:
            StateInvariantError: If the contract has not been instantiated
            DeploymentError: If the upload or migration fails
        """
        state = self.load_state()
        address = state.contract(name)
        if not address:
            raise StateInvariantError(f"{name} is not instantiated on {self.network}")

        if artifact is None:
            artifact_name = next(a for a, n in self.descriptors.items() if n == name)
            artifact = artifact_path(self.artifacts_dir, artifact_name)

        self.budget.check(f"uploading new code for {name}")
        code_id = self.client.upload(artifact)
        logger.info("Uploaded new code for %s, code_id: %s", name, code_id)

        self.budget.check(f"migrating {name}")
        try:
            tx = self.client.migrate(address, code_id, migrate_msg)
        except DeploymentError:
            logger.error(
                "Migration of %s failed, record keeps code_id %s (uploaded %s unused)",
                name, state.code_id(name), code_id,
            )
            raise
        state.set_code_id(name, code_id, replace=True)
        self.store.save(state)
        logger.info("Migrated %s (%s) to code %s, tx: %s", name, address, code_id, tx.txhash)
        return tx.txhash

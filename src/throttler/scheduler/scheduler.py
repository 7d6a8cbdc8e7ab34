"""Throttler - Triggers deployments of stale instances up to a job limit."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING

from throttler.config import DEFAULT_COMPILE_JOB_DESCRIPTION
from throttler.git_inspector import GitInspector
from throttler.scheduler.exceptions import OracleError
from throttler.scheduler.models import RunState
from throttler.scheduler.oracle import RevisionOracle
from throttler.state_store import StateStore, StateStoreError
from throttler.tgs import TestMerge, TGSClient, TGSError

if TYPE_CHECKING:
    from throttler.config import ThrottlerConfig
    from throttler.state_store import Instance

logger = logging.getLogger(__name__)

# Failures that only affect the instance being evaluated
_INSTANCE_ERRORS = (OracleError, TGSError, StateStoreError)


class Throttler:
    """Decides which instances get a new deployment in this run.

    One call to run() is one pass over all online instances. An instance is
    deployed when its last successful deployment differs from the head of
    its upstream branch and fewer than ``max_compile_jobs`` compile jobs are
    active. Instances are visited in random order so that, while capacity is
    the limit, every instance has the same chance of being picked.

    The job limit is enforced per run only. Overlapping runs each count the
    active jobs on their own and can together exceed it.
    """

    def __init__(
        self,
        max_compile_jobs: int,
        state_store: StateStore,
        tgs: TGSClient,
        oracle: RevisionOracle,
        compile_job_description: str = DEFAULT_COMPILE_JOB_DESCRIPTION,
        user_id: int | None = None,
        rng: random.Random | None = None,
        dry_run: bool = False,
        startup_error: str | None = None,
    ) -> None:
        """Initialize the Throttler.

        Args:
            max_compile_jobs: Maximum concurrent compile jobs.
            state_store: StateStore for instances and job history.
            tgs: Logged in TGS client used to trigger deployments.
            oracle: RevisionOracle for per-instance revision lookups.
            compile_job_description: Description identifying compile jobs.
            user_id: TGS user the throttler's jobs run as. Looked up from
                the TGS session on each run when not given.
            rng: Random source for the iteration order.
            dry_run: Evaluate instances without triggering anything.
            startup_error: Set when a dependency could not be acquired;
                the throttler then refuses to run.
        """
        if max_compile_jobs < 1:
            raise ValueError(f"max_compile_jobs must be positive, got {max_compile_jobs}")
        self.max_compile_jobs = max_compile_jobs
        self.state_store = state_store
        self.tgs = tgs
        self.oracle = oracle
        self.compile_job_description = compile_job_description
        self.user_id = user_id
        self.dry_run = dry_run
        self.startup_error = startup_error
        self._rng = rng if rng is not None else random.Random()

    @classmethod
    def connect(cls, config: ThrottlerConfig, dry_run: bool = False) -> Throttler:
        """Build a Throttler from configuration and acquire its dependencies.

        Connects to the state database, logs in to TGS and looks up the
        throttler's user. A failure is logged with the dependency that
        failed and yields a Throttler whose run() does nothing.

        Args:
            config: Loaded throttler configuration.
            dry_run: Evaluate instances without triggering anything.

        Returns:
            The Throttler, runnable only if every dependency was acquired.
        """
        state_store = StateStore(config.db.get_url())
        tgs = TGSClient(config.tgs.base_url, timeout=config.tgs.timeout)
        git_inspector = GitInspector(timeout=config.git.timeout)
        oracle = RevisionOracle(state_store, git_inspector, config.git.repository_dir)

        startup_error: str | None = None
        user_id: int | None = None
        try:
            state_store.ping()
        except StateStoreError as e:
            startup_error = f"state store unavailable: {e}"
            logger.error("Failed to connect to state store: %s", e)

        if startup_error is None:
            try:
                tgs.login(config.tgs.user, config.tgs.password)
                user_id = tgs.get_user_id()
            except TGSError as e:
                startup_error = f"orchestration API unavailable: {e}"
                logger.error("Failed to log in to TGS at %s: %s", config.tgs.base_url, e)

        return cls(
            max_compile_jobs=config.throttle.max,
            state_store=state_store,
            tgs=tgs,
            oracle=oracle,
            compile_job_description=config.throttle.compile_job_description,
            user_id=user_id,
            dry_run=dry_run,
            startup_error=startup_error,
        )

    @property
    def runnable(self) -> bool:
        """Whether all dependencies were acquired."""
        return self.startup_error is None

    def close(self) -> None:
        """Release the database and HTTP connections."""
        self.state_store.close()
        self.tgs.close()

    def run(self) -> RunState | None:
        """Evaluate every online instance once and trigger stale ones.

        Returns:
            RunState with the run's counters, or None if the throttler is
            not runnable.
        """
        if not self.runnable:
            logger.error("Refusing to run: %s", self.startup_error)
            return None

        state = RunState()
        try:
            instances = self.state_store.list_online_instances()
            user_id = self.user_id if self.user_id is not None else self.tgs.get_user_id()
            active_jobs = self.state_store.list_active_compile_jobs(
                user_id, self.compile_job_description
            )
        except (StateStoreError, TGSError) as e:
            state.error = str(e)
            logger.error("Run aborted, failed to read current state: %s", e)
            return state

        compiling = {job.instance_id for job in active_jobs}
        state.total = len(instances)
        state.active_jobs_at_start = state.active_jobs = len(active_jobs)
        logger.debug(
            "Active compile jobs: %d/%d (instances %s)",
            state.active_jobs,
            self.max_compile_jobs,
            sorted(compiling),
        )

        instances = list(instances)
        self._rng.shuffle(instances)
        state.order = [instance.id for instance in instances]

        for instance in instances:
            if not state.has_capacity(self.max_compile_jobs):
                state.aborted_for_capacity = True
                logger.info(
                    "Max compile jobs reached (%d), %d instance(s) left for the next run",
                    self.max_compile_jobs,
                    state.total - state.processed,
                )
                break

            state.processed += 1
            logger.debug("Processing instance %s (%d)", instance.name, instance.id)

            if instance.id in compiling:
                state.already_compiling += 1
                logger.debug("Skipping %s: already being compiled", instance.name)
                continue

            try:
                self._process_instance(instance, state)
            except _INSTANCE_ERRORS as e:
                state.failed += 1
                logger.error("Skipping instance %s (%d): %s", instance.name, instance.id, e)

        if state.triggered:
            logger.info(state.describe())
        else:
            logger.debug(state.describe())
        return state

    def _process_instance(self, instance: Instance, state: RunState) -> None:
        """Compare revisions of one instance and trigger it when stale."""
        last_success = self.oracle.last_successful_revision(instance.id)
        latest_origin = self.oracle.latest_upstream_revision(instance.path)
        logger.debug(
            "%s: last successful deployment %s, latest origin %s",
            instance.name,
            last_success,
            latest_origin,
        )

        if last_success is not None and last_success == latest_origin:
            state.already_current += 1
            logger.debug("Skipping %s: deployment is already latest", instance.name)
            return

        self._trigger_update(instance, state)

    def _trigger_update(self, instance: Instance, state: RunState) -> None:
        """Update an instance from origin and deploy it, keeping its test merges."""
        if not state.has_capacity(self.max_compile_jobs):
            logger.info("Unable to update %s: max compile jobs reached", instance.name)
            return

        branch = self.oracle.current_branch(instance.path)
        repository = self.tgs.get_repository(instance.id)
        # Leave the target commit unset so the server re-resolves each pull request
        test_merges = [
            TestMerge(number=tm.number, comment=tm.comment)
            for tm in repository.active_test_merges
        ]

        if self.dry_run:
            logger.info(
                "Dry run: would update %s (%d) from %s on %s with %d test merge(s) and deploy",
                instance.name,
                instance.id,
                repository.revision,
                branch,
                len(test_merges),
            )
        else:
            logger.info(
                "Triggering update of %s (%d) from %s on %s",
                instance.name,
                instance.id,
                repository.revision,
                branch,
            )
            self.tgs.update_repository(instance.id, branch, test_merges)
            self.tgs.deploy(instance.id)

        state.active_jobs += 1
        state.triggered += 1
        state.triggered_instances.append(instance.id)

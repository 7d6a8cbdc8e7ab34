"""Data models for the Scheduler module."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class RunState:
    """Counters of a single throttler run.

    Created when a run starts and returned to the caller when it ends;
    never shared between runs.

    Attributes:
        total: Online instances considered.
        processed: Instances evaluated before the run ended or hit capacity.
        already_compiling: Instances skipped because a compile job is active.
        already_current: Instances skipped because the deployment is up to date.
        triggered: Instances an update and deploy was requested for.
        failed: Instances skipped because a lookup or request failed.
        active_jobs_at_start: Active compile jobs found when the run started.
        active_jobs: Capacity counter, active plus newly triggered compile jobs.
        aborted_for_capacity: Whether iteration stopped at the job limit.
        error: Why the run could not read global state, if it could not.
        order: Instance IDs in the order they were iterated.
        triggered_instances: IDs of the instances that were triggered.
    """

    total: int = 0
    processed: int = 0
    already_compiling: int = 0
    already_current: int = 0
    triggered: int = 0
    failed: int = 0
    active_jobs_at_start: int = 0
    active_jobs: int = 0
    aborted_for_capacity: bool = False
    error: str | None = None
    order: list[int] = field(default_factory=list)
    triggered_instances: list[int] = field(default_factory=list)

    def has_capacity(self, max_compile_jobs: int) -> bool:
        """Whether another compile job may be started."""
        return self.active_jobs < max_compile_jobs

    def describe(self) -> str:
        """One-line human readable summary."""
        return (
            f"Processed {self.processed}/{self.total} instances: "
            f"{self.already_compiling} already compiling, "
            f"{self.already_current} already current, "
            f"{self.triggered} triggered, {self.failed} failed"
        )

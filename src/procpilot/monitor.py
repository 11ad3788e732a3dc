"""Refresh orchestration: fetch, compute and publish process snapshots.

One refresh walks Idle -> Fetching -> Computing -> Publishing -> Idle. A
refresh requested while another is in progress is dropped (single-flight).
Blocking work (ps, bundle lookups, tick reads, the sort) runs in the
default executor so the event loop stays responsive.

The first samples after startup have no CPU tick baseline. Until a refresh
measures some process against a baseline, a warmup task performs extra
refreshes a short sleep apart so real per-interval CPU figures appear
quickly. A process that spawned since the last sample makes the interval
invalid, but the others are still measured; the newcomer shows ps's figure.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import replace
from enum import Enum

import structlog

from procpilot import libproc
from procpilot.acquirer import AcquisitionError, SnapshotAcquirer
from procpilot.cache import BoundedCache
from procpilot.classifier import ProcessClassifier
from procpilot.config import Config
from procpilot.delta import CPUUsageDelta, CPUUsageDeltaState, calculate_cpu_usage
from procpilot.history import BottomBarHistory, BottomBarMetrics, SystemSample, read_system_sample
from procpilot.models import SYSTEM_GROUP_NAME, ProcessGroup, ProcessRecord, SortKey
from procpilot.ordering import (
    CancellationToken,
    SortCancelledError,
    build_groups,
    order_groups,
    sort_processes_cancellable,
)
from procpilot.smoothing import SystemGroupSmoother, UsageSmoother
from procpilot.termination import PrivilegedHelper, TerminationResult, terminate

log = structlog.get_logger()

CalculateFn = Callable[..., CPUUsageDelta]


class RefreshPhase(Enum):
    """Where the refresh state machine currently is."""

    IDLE = "idle"
    FETCHING = "fetching"
    COMPUTING = "computing"
    PUBLISHING = "publishing"


def _build_snapshot(
    records: Sequence[ProcessRecord],
    key: SortKey,
    descending: bool,
    filter_text: str,
    token: CancellationToken,
    system_totals: tuple[float, float] | None,
) -> tuple[list[ProcessRecord], list[ProcessGroup]]:
    """Sort, filter and group records (runs in an executor thread)."""
    visible = sort_processes_cancellable(
        records, key, token, filter_text=filter_text, descending=descending
    )
    groups = build_groups(visible)
    if system_totals is not None:
        cpu, memory = system_totals
        groups = [
            replace(g, smoothed_total_cpu=cpu, smoothed_total_memory=memory)
            if g.app_name == SYSTEM_GROUP_NAME
            else g
            for g in groups
        ]
    token.raise_if_cancelled()
    return visible, order_groups(groups, key, descending)


class ProcessMonitor:
    """Owns the refresh cycle and the published process snapshot.

    Every collaborator can be replaced so the cycle runs without touching
    the host: fetch returns raw records, read_ticks maps PIDs to cumulative
    CPU ticks, clock returns monotonic nanoseconds, and sleep is the
    cancellable sleep used between warmup passes.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        fetch: Callable[[], list[ProcessRecord]] | None = None,
        classifier: ProcessClassifier | None = None,
        read_ticks: Callable[[Iterable[int]], dict[int, int]] = libproc.read_cpu_ticks,
        timebase: Callable[[], libproc.TimebaseInfo] = libproc.get_timebase_info,
        clock: Callable[[], int] = time.monotonic_ns,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        sample_system: Callable[[], SystemSample] | None = read_system_sample,
        calculate: CalculateFn = calculate_cpu_usage,
        helper: PrivilegedHelper | None = None,
    ) -> None:
        self.config = config or Config()
        self._fetch = fetch or SnapshotAcquirer().fetch
        self.classifier = classifier or ProcessClassifier(
            bundle_cache=BoundedCache(self.config.cache.bundle_description_capacity),
            app_aliases=self.config.classifier.app_aliases,
            app_bundle_name=self.config.classifier.app_bundle_name,
        )
        self._read_ticks = read_ticks
        self._timebase = timebase
        self._clock = clock
        self._sleep = sleep
        self._sample_system = sample_system
        self._calculate = calculate
        self.helper = helper

        window = self.config.smoothing.window_size
        self.smoother = UsageSmoother(window_size=window)
        self.system_smoother = SystemGroupSmoother(window_size=window)
        self.history = BottomBarHistory(max_samples=self.config.history.max_samples)
        self._delta_state = CPUUsageDeltaState.empty()
        self._min_interval_ns = int(self.config.sampling.min_delta_interval * 1_000_000_000)

        self.phase = RefreshPhase.IDLE
        self.fetch_count = 0
        self.sort_key = SortKey.CPU
        self.descending = True
        self.filter_text = ""

        # Published state
        self.processes: list[ProcessRecord] = []
        self.groups: list[ProcessGroup] = []
        self.metrics: BottomBarMetrics | None = None
        self.last_refresh: float | None = None

        self._all_records: list[ProcessRecord] = []
        self._system_totals: tuple[float, float] | None = None
        self._publish_version = 0
        self._sort_token: CancellationToken | None = None
        self._needs_warmup = True
        self._warmup_task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    # ─────────────────────────────────────────────────────────────────────────
    # Refresh
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def is_refreshing(self) -> bool:
        return self.phase is not RefreshPhase.IDLE

    async def refresh(self) -> bool:
        """Run one refresh cycle.

        Returns:
            True if a new snapshot was published. False when another refresh
            was already running, the listing failed, or the publish was
            superseded by a newer one.
        """
        refreshed = await self._refresh()
        if self._needs_warmup and not self.warmup_running:
            self.start_warmup()
        return refreshed

    async def _refresh(self, warmup: bool = False) -> bool:
        if self.phase is not RefreshPhase.IDLE:
            log.debug("refresh_skipped", phase=self.phase.value)
            return False
        # Claimed synchronously: no await between the check and the set
        self.phase = RefreshPhase.FETCHING
        loop = asyncio.get_running_loop()

        try:
            self.fetch_count += 1
            try:
                fetched = await loop.run_in_executor(None, self._fetch)
            except AcquisitionError as e:
                log.error("refresh_failed", error=str(e), fetch_count=self.fetch_count)
                return False

            self.phase = RefreshPhase.COMPUTING
            classified, ticks, sample = await loop.run_in_executor(None, self._gather, fetched)
            self._compute(classified, ticks, sample, warmup)

            self.phase = RefreshPhase.PUBLISHING
            published = await self._publish()
            if published:
                self.last_refresh = time.time()
            return published
        finally:
            self.phase = RefreshPhase.IDLE

    def _gather(
        self, fetched: list[ProcessRecord]
    ) -> tuple[list[ProcessRecord], dict[int, int], SystemSample | None]:
        """Blocking half of the compute phase: classification and OS reads."""
        classified = self.classifier.apply(fetched)
        ticks = self._read_ticks([r.pid for r in classified])
        sample = self._sample_system() if self._sample_system is not None else None
        return classified, ticks, sample

    def _compute(
        self,
        classified: list[ProcessRecord],
        ticks: dict[int, int],
        sample: SystemSample | None,
        warmup: bool,
    ) -> None:
        timebase = self._timebase()
        previous = self._delta_state
        now = self._clock()
        delta = self._calculate(
            classified,
            ticks,
            previous,
            now,
            timebase.numer,
            timebase.denom,
            self._min_interval_ns,
        )
        self._delta_state = delta.state

        if delta.has_valid_interval:
            records = delta.records
            baseline = True
        else:
            baseline = self._has_baseline(previous, now, ticks)
            if baseline:
                # Newly spawned PIDs keep ps's figure; the rest are measured
                records = [
                    r if r.pid in ticks and r.pid not in previous.ticks_by_pid else measured
                    for r, measured in zip(classified, delta.records)
                ]
            else:
                # No baseline yet; ps's own figure beats a column of zeros
                records = classified

        if not baseline:
            self._needs_warmup = True
        elif warmup:
            self._needs_warmup = False

        self._all_records = self.smoother.smooth(records)

        system_groups = [g for g in build_groups(self._all_records) if g.app_name == SYSTEM_GROUP_NAME]
        smoothed = self.system_smoother.smooth(system_groups)
        self._system_totals = (smoothed[0].total_cpu, smoothed[0].total_memory) if smoothed else None

        if sample is not None:
            self.metrics = self.history.next_metrics(sample)

    def _has_baseline(self, previous: CPUUsageDeltaState, now: int, ticks: dict[int, int]) -> bool:
        """True if some current PID was measured over a long enough interval."""
        if previous.sample_timestamp_ns is None:
            return False
        if now - previous.sample_timestamp_ns < self._min_interval_ns:
            return False
        return any(pid in previous.ticks_by_pid for pid in ticks)

    # ─────────────────────────────────────────────────────────────────────────
    # Publishing
    # ─────────────────────────────────────────────────────────────────────────

    async def _publish(self) -> bool:
        """Sort and group the current record set; newer publishes win."""
        self._publish_version += 1
        version = self._publish_version
        if self._sort_token is not None:
            self._sort_token.cancel()
        token = CancellationToken()
        self._sort_token = token

        # Smoothed system totals only describe the unfiltered group
        system_totals = self._system_totals if not self.filter_text else None
        loop = asyncio.get_running_loop()
        try:
            processes, groups = await loop.run_in_executor(
                None,
                _build_snapshot,
                list(self._all_records),
                self.sort_key,
                self.descending,
                self.filter_text,
                token,
                system_totals,
            )
        except SortCancelledError:
            log.debug("publish_superseded", version=version)
            return False

        if version != self._publish_version:
            log.debug("publish_superseded", version=version)
            return False

        self.processes = processes
        self.groups = groups
        return True

    async def set_sort(self, key: SortKey) -> bool:
        self.sort_key = key
        return await self._publish()

    async def set_descending(self, descending: bool) -> bool:
        self.descending = descending
        return await self._publish()

    async def set_filter(self, text: str) -> bool:
        self.filter_text = text
        return await self._publish()

    async def remove_processes(self, pids: Iterable[int]) -> bool:
        """Drop processes known to be gone and republish.

        Smoothing and tick history for the PIDs are purged so a reused PID
        starts fresh.
        """
        drop = set(pids)
        if not drop:
            return False
        self.smoother.remove_history(drop)
        self._delta_state = self._delta_state.without(drop)

        before = len(self._all_records)
        self._all_records = [r for r in self._all_records if r.pid not in drop]
        if len(self._all_records) == before:
            return False
        return await self._publish()

    def find(self, pid: int) -> ProcessRecord | None:
        """Look up a record in the latest (unfiltered) record set."""
        for record in self._all_records:
            if record.pid == pid:
                return record
        return None

    async def terminate(self, pid: int, force: bool = False) -> TerminationResult:
        """Signal a process; on success it is removed from the snapshot."""
        result = await terminate(pid, force=force, helper=self.helper)
        if result.ok:
            await self.remove_processes({pid})
        return result

    # ─────────────────────────────────────────────────────────────────────────
    # Warmup
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def warmup_running(self) -> bool:
        return self._warmup_task is not None and not self._warmup_task.done()

    def start_warmup(self, passes: int | None = None, interval: float | None = None) -> None:
        """Start the warmup task unless one is already running."""
        if self.warmup_running:
            return
        passes = self.config.sampling.warmup_passes if passes is None else passes
        interval = self.config.sampling.warmup_interval if interval is None else interval
        if passes < 1:
            return
        self._warmup_task = asyncio.create_task(self._warmup(passes, interval))

    def cancel_warmup(self) -> None:
        if self._warmup_task is not None and not self._warmup_task.done():
            self._warmup_task.cancel()
        self._warmup_task = None

    async def wait_for_warmup(self) -> None:
        """Wait until the current warmup task (if any) has finished."""
        task = self._warmup_task
        if task is not None:
            await asyncio.wait({task})

    async def _warmup(self, passes: int, interval: float) -> None:
        log.debug("warmup_started", passes=passes, interval=interval)
        for attempt in range(1, passes + 1):
            # Cancellation lands here, before any further fetch
            await self._sleep(interval)
            await self._refresh(warmup=True)
            if not self._needs_warmup:
                log.debug("warmup_completed", passes=attempt)
                return
        log.info("warmup_exhausted", passes=passes)

    # ─────────────────────────────────────────────────────────────────────────
    # Periodic loop
    # ─────────────────────────────────────────────────────────────────────────

    async def run(
        self,
        interval: float | None = None,
        on_refresh: Callable[["ProcessMonitor"], None] | None = None,
        max_refreshes: int | None = None,
    ) -> int:
        """Refresh every interval seconds until stop() is called.

        Args:
            interval: Seconds between refreshes (defaults to config)
            on_refresh: Called after each published refresh
            max_refreshes: Stop after this many published refreshes

        Returns:
            Number of published refreshes.
        """
        interval = interval or self.config.sampling.refresh_interval
        self._stop_event.clear()
        refreshes = 0
        log.info("monitor_started", interval=interval)

        try:
            while not self._stop_event.is_set():
                if await self.refresh():
                    refreshes += 1
                    if on_refresh is not None:
                        on_refresh(self)
                    if max_refreshes is not None and refreshes >= max_refreshes:
                        break
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                    break  # Stop requested during sleep
                except asyncio.TimeoutError:
                    pass
        finally:
            self.cancel_warmup()
            log.info("monitor_stopped", refreshes=refreshes)

        return refreshes

    def stop(self) -> None:
        self._stop_event.set()

import logging
import os

from collections import Counter
from dataclasses import dataclass, field
from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm
from typing import Callable, List

from ..utils import files_utils, generic_utils
from ..utils.config_utils import MoverConfig
from ..utils.data_structs import MergeOutcome, MergeStatus, MoverTask
from .aggregator import EpisodeAggregator
from .orchestrator import MergeOrchestrator
from .stability import StabilityTracker


ProgressCallback = Callable[[float], None]


def ignore_progress(progress: float) -> None:
    pass


@dataclass
class TaskSummary:
    task: MoverTask
    outcomes: Counter = field(default_factory=Counter)
    cancelled: bool = False

    def add(self, outcome: MergeOutcome) -> None:
        self.outcomes[outcome.status] += 1

    def count(self, status: MergeStatus) -> int:
        return self.outcomes[status]

    def __str__(self) -> str:
        details = ", ".join(f"{status.value}: {count}" for status, count in self.outcomes.items())
        state = " (cancelled)" if self.cancelled else ""
        return f"{self.task.title}{state}: {details or 'nothing to do'}"


class TaskRunner:
    """
        Runs mover tasks one after another.
        Tasks and episodes are never processed in parallel, merging is heavy on disk already.
    """

    def __init__(self,
                 config: MoverConfig,
                 aggregator: EpisodeAggregator,
                 orchestrator: MergeOrchestrator,
                 tracker: StabilityTracker,
                 logger: logging.Logger | None = None,
                 watch_changes: bool = True) -> None:
        self.config = config
        self.aggregator = aggregator
        self.orchestrator = orchestrator
        self.tracker = tracker
        self.logger = logger or logging.getLogger(__name__)
        self.watch_changes = watch_changes

    def run(self,
            tasks: List[MoverTask],
            progress: ProgressCallback = ignore_progress,
            should_stop: generic_utils.StopPredicate = generic_utils.never_stop) -> List[TaskSummary]:
        summaries: List[TaskSummary] = []

        if not tasks:
            self.logger.warning("No tasks configured")
            return summaries

        for i, task in enumerate(tasks):
            if should_stop():
                self.logger.info("Stopping before remaining tasks")
                break

            def task_progress(value: float, index: int = i) -> None:
                progress((index * 100.0 + value) / len(tasks))

            try:
                summary = self.run_task(task, task_progress, should_stop)
                self.logger.info(f"Task finished: {summary}")
                summaries.append(summary)
            except OSError as e:
                self.logger.error(f"Task {task.title} aborted: {e}")

            progress((i + 1) * 100.0 / len(tasks))

        return summaries

    def run_task(self,
                 task: MoverTask,
                 progress: ProgressCallback = ignore_progress,
                 should_stop: generic_utils.StopPredicate = generic_utils.never_stop) -> TaskSummary:
        summary = TaskSummary(task)
        self.logger.info(f"Processing task: {task.title}")

        if not os.path.isdir(task.source_folder):
            self.logger.error(f"Source folder not found: {task.source_folder}")
            progress(100.0)
            return summary

        files = files_utils.collect_files(task.source_folder)
        self.logger.info(f"Found {len(files)} files in {task.source_folder}")

        for file in files:
            self.tracker.record_snapshot(file)

        if self.watch_changes:
            self.tracker.watch(task.source_folder)

        # grace period for files which are still being written
        if not generic_utils.wait(self.config.grace_period_seconds, should_stop):
            self.logger.info(f"Task {task.title} cancelled")
            summary.cancelled = True
            return summary

        groups = self.aggregator.group(files)
        total = len(groups)
        self.logger.info(f"Found {total} episodes")

        with logging_redirect_tqdm():
            for done, group in enumerate(tqdm(groups, desc=task.title, unit="episode", **generic_utils.get_tqdm_defaults()), start=1):
                if should_stop():
                    self.logger.info(f"Task {task.title} cancelled, {total - done + 1} episodes left")
                    summary.cancelled = True
                    break

                outcome = self.orchestrator.process(group, task, should_stop)
                summary.add(outcome)
                progress(done / total * 100.0)

        if total == 0:
            progress(100.0)

        return summary

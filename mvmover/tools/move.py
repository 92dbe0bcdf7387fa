import argparse
import logging

from overrides import override
from typing import List

from .tool import Tool
from .mover.aggregator import EpisodeAggregator
from .mover.dedup import DedupSelector
from .mover.orchestrator import MergeOrchestrator
from .mover.runner import ProgressCallback, TaskRunner, TaskSummary, ignore_progress
from .mover.stability import StabilityTracker
from .utils import config_utils, generic_utils, process_utils
from .utils.language_utils import AudioDescriptionClassifier, LanguageResolver, LocaleCatalog, CldrLocaleCatalog
from .utils.video_utils import MkvMergeEngine, MuxingEngine


class Mover:
    """
        Merges downloaded episode versions into single files and places them in the library.
        Entry point for schedulers: process()
    """

    def __init__(self,
                 config: config_utils.MoverConfig,
                 working_dir: str,
                 logger: logging.Logger,
                 dry_run: bool = True,
                 engine: MuxingEngine | None = None,
                 catalog: LocaleCatalog | None = None,
                 tracker: StabilityTracker | None = None,
                 watch_changes: bool = True) -> None:
        self.config = config
        self.logger = logger
        self.tracker = tracker or StabilityTracker(logger.getChild("stability"))
        self.catalog = catalog or CldrLocaleCatalog(config.display_locales)

        resolver = LanguageResolver(self.catalog, logger.getChild("language"))
        audio_description = AudioDescriptionClassifier(config.audio_description_patterns)

        aggregator = EpisodeAggregator(resolver, audio_description, self.tracker, logger.getChild("aggregator"))
        orchestrator = MergeOrchestrator(config,
                                         self.tracker,
                                         engine or MkvMergeEngine(show_progress=True),
                                         working_dir,
                                         dedup=DedupSelector(logger=logger.getChild("dedup")),
                                         logger=logger.getChild("merge"),
                                         dry_run=dry_run)

        self.runner = TaskRunner(config, aggregator, orchestrator, self.tracker, logger, watch_changes=watch_changes)

    def process(self,
                progress: ProgressCallback = ignore_progress,
                should_stop: generic_utils.StopPredicate = generic_utils.never_stop) -> List[TaskSummary]:
        self.logger.info("Mover - start")
        summaries = self.runner.run(self.config.tasks, progress, should_stop)
        self.logger.info("Mover - done")

        return summaries

    def close(self) -> None:
        self.tracker.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class MoveTool(Tool):
    @override
    def setup_parser(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--config", "-c",
                            required=True,
                            help="JSON file with mover tasks and options.")
        parser.add_argument("--delete-source",
                            action="store_true",
                            default=None,
                            help="Remove all files of an episode after successful merge.")
        parser.add_argument("--skip-audio-description",
                            action="store_true",
                            default=None,
                            help="Do not merge audio description versions.")
        parser.add_argument("--merge-incomplete",
                            action="store_true",
                            default=None,
                            help="Merge episodes even if they have fewer versions than required by task.")
        parser.add_argument("--settle-minutes",
                            type=float,
                            help="Time files must stay unmodified before they are merged.")
        parser.add_argument("--grace-period",
                            type=float,
                            help="Seconds to wait after collecting files before checking if they are still written.")

    @staticmethod
    def _apply_overrides(config: config_utils.MoverConfig, args: argparse.Namespace) -> None:
        if args.delete_source is not None:
            config.delete_source = args.delete_source
        if args.skip_audio_description is not None:
            config.skip_audio_description = args.skip_audio_description
        if args.merge_incomplete is not None:
            config.merge_incomplete = args.merge_incomplete
        if args.settle_minutes is not None:
            config.settle_minutes = args.settle_minutes
        if args.grace_period is not None:
            config.grace_period_seconds = args.grace_period

    @override
    def run(self, args: argparse.Namespace, no_dry_run: bool, logger: logging.Logger, working_dir: str) -> None:
        if no_dry_run:
            process_utils.ensure_tools_exist(["mkvmerge"], logger)

        config = config_utils.load_config(args.config, logger)
        self._apply_overrides(config, args)

        interruption = generic_utils.InterruptibleProcess()

        with Mover(config, working_dir, logger, dry_run=not no_dry_run) as mover:
            summaries = mover.process(should_stop=interruption.stop_requested)

        for summary in summaries:
            logger.info(str(summary))

import logging
import os

from typing import Any, Callable, List, Tuple

from ..utils import files_utils, generic_utils, language_utils, naming_utils
from ..utils.config_utils import MoverConfig
from ..utils.data_structs import (
    AudioStream,
    EpisodeGroup,
    EpisodeKey,
    FileKind,
    MediaFileInput,
    MergeOutcome,
    MergeStatus,
    MoverTask,
    StreamPlan,
    SubtitleStream,
)
from ..utils.video_utils import MuxingEngine
from .dedup import DedupSelector
from .stability import StabilityTracker


AUDIO_DESCRIPTION_LABEL = "Audio Description"

PrimaryOrder = Callable[[MediaFileInput], Any]


def default_primary_order(file: MediaFileInput) -> Tuple[bool, int]:
    # regular versions before audio description ones, then shorter names first
    return (file.is_audio_description, len(file.name))


def season_folder(task: MoverTask, season: int) -> str:
    return os.path.join(task.target_folder, f"Staffel {season}")


def target_file_name(key: EpisodeKey, primary: MediaFileInput, container: str) -> str:
    title = naming_utils.normalize_title(primary.name)
    if title:
        return f"{key} - {title}.{container}"
    else:
        return f"{key}.{container}"


class MergeOrchestrator:
    def __init__(self,
                 config: MoverConfig,
                 tracker: StabilityTracker,
                 engine: MuxingEngine,
                 working_dir: str,
                 dedup: DedupSelector | None = None,
                 logger: logging.Logger | None = None,
                 dry_run: bool = False,
                 primary_order: PrimaryOrder = default_primary_order) -> None:
        self.config = config
        self.tracker = tracker
        self.engine = engine
        self.working_dir = working_dir
        self.dedup = dedup or DedupSelector()
        self.logger = logger or logging.getLogger(__name__)
        self.dry_run = dry_run
        self.primary_order = primary_order

    def target_path(self, task: MoverTask, key: EpisodeKey, primary: MediaFileInput) -> str:
        if key.season is None:
            raise ValueError(f"Episode {key} has no season")

        return os.path.join(season_folder(task, key.season), target_file_name(key, primary, self.engine.container))

    def _usable(self, files: List[MediaFileInput]) -> List[MediaFileInput]:
        if self.config.skip_audio_description:
            files = [f for f in files if not f.is_audio_description]

        return sorted(files, key=self.primary_order)

    def build_plan(self, primary: MediaFileInput, auxiliary: List[MediaFileInput], subtitles: List[MediaFileInput]) -> StreamPlan:
        def label(file: MediaFileInput) -> str | None:
            return AUDIO_DESCRIPTION_LABEL if file.is_audio_description else None

        plan = StreamPlan(video=primary.path)
        plan.audio.append(AudioStream(
            path=primary.path,
            language=primary.language,
            default=True,
            visual_impaired=primary.is_audio_description,
            name=label(primary),
        ))

        for video in auxiliary:
            plan.audio.append(AudioStream(
                path=video.path,
                language=video.language,
                default=False,
                visual_impaired=video.is_audio_description,
                name=label(video),
            ))

        for subtitle in subtitles:
            plan.subtitles.append(SubtitleStream(
                path=subtitle.path,
                language=subtitle.language,
                default=False,
                name=label(subtitle),
            ))

        return plan

    def _log_plan(self, plan: StreamPlan) -> None:
        self.logger.info(f"Video: {plan.video}")
        for audio in plan.audio:
            flags = " (default)" if audio.default else ""
            flags += " (audio description)" if audio.visual_impaired else ""
            self.logger.info(f"\tAudio [{audio.language}] {language_utils.language_name(audio.language)}{flags}: {audio.path}")

        for subtitle in plan.subtitles:
            self.logger.info(f"\tSubtitle [{subtitle.language}] {language_utils.language_name(subtitle.language)}: {subtitle.path}")

    def _is_valid_output(self, path: str) -> bool:
        if not os.path.exists(path):
            self.logger.warning(f"Output file {path} does not exist")
            return False

        size = os.path.getsize(path)
        if size <= self.config.min_output_size:
            self.logger.warning(f"Output file {path} is too small ({size} bytes, required more than {self.config.min_output_size})")
            return False

        return True

    def _place(self, temporary_output: str, target: str) -> None:
        os.makedirs(os.path.dirname(target), exist_ok=True)
        files_utils.move_atomically(temporary_output, target)

    def _delete_sources(self, files: List[MediaFileInput]) -> None:
        for file in files:
            try:
                os.remove(file.path)
                self.logger.debug(f"File {file.path} removed")
            except OSError as e:
                self.logger.warning(f"Could not remove {file.path}: {e}")

    def process(self, group: EpisodeGroup, task: MoverTask, should_stop: generic_utils.StopPredicate = generic_utils.never_stop) -> MergeOutcome:
        key = group.key
        if not key.is_classifiable:
            self.logger.info(f"Skipping {len(group.files)} files without recognizable season or episode")
            return MergeOutcome(MergeStatus.UNCLASSIFIABLE, reason="no season or episode")

        self.logger.info(f"Processing episode {key} ({group.files[0].name}) with {len(group.files)} files")

        dirty = self.tracker.dirty_files([f.path for f in group.files], self.config.settle_window)
        if dirty:
            dirty_str = "\n".join(dirty)
            self.logger.warning(f"Files of episode {key} are being modified or are in use:\n{dirty_str}")
            return MergeOutcome(MergeStatus.NOT_SETTLED, reason="files not settled")

        videos = self._usable(group.of_kind(FileKind.VIDEO))
        subtitles = self._usable(group.of_kind(FileKind.SUBTITLE))

        if not videos:
            self.logger.info(f"No video files for episode {key}")
            return MergeOutcome(MergeStatus.NO_VIDEO, reason="no video files")

        if len(videos) < task.min_version_count:
            if self.config.merge_incomplete:
                self.logger.info(f"Episode {key} has too few versions ({len(videos)} of {task.min_version_count}), merging anyway")
            else:
                self.logger.info(f"Episode {key} has too few versions ({len(videos)} of {task.min_version_count})")
                return MergeOutcome(MergeStatus.TOO_FEW_VERSIONS, reason=f"{len(videos)} of {task.min_version_count} versions")

        primary, auxiliary = videos[0], videos[1:]
        subtitles = self.dedup.select(subtitles)

        target = self.target_path(task, key, primary)
        if os.path.exists(target):
            self.logger.info(f"Target file {target} already exists. Skipping.")
            return MergeOutcome(MergeStatus.EXISTS, target=target)

        plan = self.build_plan(primary, auxiliary, subtitles)
        self.logger.info(f"Merging episode {key} into {target}:")
        self._log_plan(plan)

        if self.dry_run:
            return MergeOutcome(MergeStatus.PLANNED, target=target)

        if should_stop():
            return MergeOutcome(MergeStatus.CANCELLED, reason="cancelled before merge")

        os.makedirs(self.working_dir, exist_ok=True)
        temporary_output = files_utils.get_unique_file_name(self.working_dir, self.engine.container)

        with files_utils.ScopedFile(temporary_output):
            try:
                self.engine.mux(plan, temporary_output, should_stop)
            except generic_utils.OperationCancelled:
                self.logger.info(f"Merge of episode {key} cancelled")
                return MergeOutcome(MergeStatus.CANCELLED, reason="cancelled during merge")
            except RuntimeError as e:
                self.logger.error(f"Merge of episode {key} failed: {e}")
                return MergeOutcome(MergeStatus.FAILED, reason=str(e))

            if should_stop():
                return MergeOutcome(MergeStatus.CANCELLED, reason="cancelled after merge")

            if not self._is_valid_output(temporary_output):
                self.logger.error(f"Merge of episode {key} produced invalid output")
                return MergeOutcome(MergeStatus.FAILED, reason="output missing or too small")

            self._place(temporary_output, target)

        if self.config.delete_source:
            self._delete_sources(group.files)

        self.logger.info(f"Episode {key} merged into {target}")
        return MergeOutcome(MergeStatus.MERGED, target=target)

import logging
import os

from typing import Dict, Iterable, List

from ..utils import files_utils, naming_utils
from ..utils.data_structs import EpisodeGroup, EpisodeKey, MediaFileInput
from ..utils.language_utils import AudioDescriptionClassifier, LanguageResolver
from .stability import StabilityTracker


class EpisodeAggregator:
    def __init__(self,
                 language_resolver: LanguageResolver,
                 audio_description: AudioDescriptionClassifier,
                 tracker: StabilityTracker | None = None,
                 logger: logging.Logger | None = None) -> None:
        self.language_resolver = language_resolver
        self.audio_description = audio_description
        self.tracker = tracker
        self.logger = logger or logging.getLogger(__name__)

    def _key_for(self, path: str) -> EpisodeKey:
        if self.tracker is not None:
            try:
                metadata = self.tracker.get_file_metadata(path)
                return EpisodeKey(metadata.season, metadata.episode)
            except FileNotFoundError:
                # vanished after enumeration, stability check will reject its group
                self.logger.debug(f"File disappeared: {path}")

        name = os.path.basename(path)
        return EpisodeKey(naming_utils.extract_season(name), naming_utils.extract_episode(name))

    def _build_input(self, path: str) -> MediaFileInput | None:
        kind = files_utils.classify(path)
        if kind is None:
            return None

        return MediaFileInput(
            path=path,
            kind=kind,
            language=self.language_resolver.resolve_file(path),
            is_audio_description=self.audio_description.is_audio_description(os.path.basename(path)),
        )

    def group(self, files: Iterable[str]) -> List[EpisodeGroup]:
        """
            Split files into groups of the same episode.
            Groups keep order of first appearance, files keep input order.
            Files of unknown type are ignored.
            Files without season or episode end in groups with unclassifiable keys.
        """
        groups: Dict[EpisodeKey, EpisodeGroup] = {}

        for path in files:
            media_file = self._build_input(path)
            if media_file is None:
                self.logger.debug(f"Ignoring file of unknown type: {path}")
                continue

            key = self._key_for(path)
            groups.setdefault(key, EpisodeGroup(key)).files.append(media_file)

        return list(groups.values())

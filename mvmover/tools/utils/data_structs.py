import enum
import hashlib
import os

from dataclasses import dataclass, field
from typing import List, NamedTuple


UNDETERMINED_LANGUAGE = "und"


class FileKind(enum.Enum):
    VIDEO = "video"
    SUBTITLE = "subtitle"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True, kw_only=True)
class MoverTask:
    title: str
    min_version_count: int
    source_folder: str
    target_folder: str


@dataclass(kw_only=True)
class MediaFileInput:
    path: str
    kind: FileKind
    language: str = UNDETERMINED_LANGUAGE
    is_audio_description: bool = False
    _hash: str | None = field(default=None, init=False, repr=False, compare=False)

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    @property
    def size(self) -> int:
        return os.path.getsize(self.path)

    @property
    def content_hash(self) -> str:
        if self._hash is None:
            digest = hashlib.sha256()
            with open(self.path, "rb") as f:
                while chunk := f.read(65536):
                    digest.update(chunk)

            self._hash = digest.hexdigest()

        return self._hash


class EpisodeKey(NamedTuple):
    season: int | None
    episode: int | None

    @property
    def is_classifiable(self) -> bool:
        return self.season is not None and self.episode is not None

    def __str__(self) -> str:
        if not self.is_classifiable:
            return f"S{self.season}E{self.episode}"
        return f"S{self.season:02}E{self.episode:02}"


@dataclass
class EpisodeGroup:
    key: EpisodeKey
    files: List[MediaFileInput] = field(default_factory=list)

    @property
    def is_classifiable(self) -> bool:
        return self.key.is_classifiable

    def of_kind(self, kind: FileKind) -> List[MediaFileInput]:
        return [f for f in self.files if f.kind == kind]


@dataclass(frozen=True)
class FileMetadata:
    name: str
    normalized_title: str
    season: int | None
    episode: int | None
    size: int
    modified: float


# stream plan passed to muxing engines
@dataclass(kw_only=True)
class AudioStream:
    path: str
    language: str = UNDETERMINED_LANGUAGE
    default: bool = False
    visual_impaired: bool = False
    name: str | None = None


@dataclass(kw_only=True)
class SubtitleStream:
    path: str
    language: str = UNDETERMINED_LANGUAGE
    default: bool = False
    name: str | None = None


@dataclass(kw_only=True)
class StreamPlan:
    video: str
    audio: List[AudioStream] = field(default_factory=list)
    subtitles: List[SubtitleStream] = field(default_factory=list)

    def inputs(self) -> List[str]:
        paths = [self.video]
        paths.extend(a.path for a in self.audio if a.path != self.video)
        paths.extend(s.path for s in self.subtitles)
        return paths


class MergeStatus(enum.Enum):
    MERGED = "merged"
    PLANNED = "planned"
    EXISTS = "exists"
    NOT_SETTLED = "not settled"
    NO_VIDEO = "no video"
    TOO_FEW_VERSIONS = "too few versions"
    FAILED = "failed"
    CANCELLED = "cancelled"
    UNCLASSIFIABLE = "unclassifiable"


@dataclass(frozen=True)
class MergeOutcome:
    status: MergeStatus
    target: str | None = None
    reason: str = ""

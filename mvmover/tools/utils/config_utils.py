"""Loading of mover configuration from a JSON file."""

import json
import logging

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List

from .data_structs import MoverTask
from .language_utils import DEFAULT_AUDIO_DESCRIPTION_PATTERNS


@dataclass(kw_only=True)
class MoverConfig:
    tasks: List[MoverTask] = field(default_factory=list)
    skip_audio_description: bool = False
    delete_source: bool = False
    audio_description_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_AUDIO_DESCRIPTION_PATTERNS))
    merge_incomplete: bool = False
    settle_minutes: float = 60
    grace_period_seconds: float = 10
    min_output_size: int = 100 * 1000 * 1000
    display_locales: List[str] = field(default_factory=lambda: ["de"])

    @property
    def settle_window(self) -> float:
        return self.settle_minutes * 60


TASK_KEYS = ["title", "min_version_count", "source_folder", "target_folder"]


def task_from_dict(data: Dict[str, Any]) -> MoverTask:
    if not isinstance(data, dict):
        raise ValueError(f"Task definition must be an object, got: {data!r}")

    missing = [key for key in TASK_KEYS if key not in data]
    if missing:
        raise ValueError(f"Task definition {data!r} is missing: {', '.join(missing)}")

    unknown = [key for key in data if key not in TASK_KEYS]
    if unknown:
        raise ValueError(f"Unknown task options: {', '.join(unknown)}")

    min_version_count = data["min_version_count"]
    if not isinstance(min_version_count, int) or min_version_count < 0:
        raise ValueError(f"min_version_count must be a non negative integer, got: {min_version_count!r}")

    return MoverTask(
        title=str(data["title"]),
        min_version_count=min_version_count,
        source_folder=str(data["source_folder"]),
        target_folder=str(data["target_folder"]),
    )


def config_from_dict(data: Dict[str, Any]) -> MoverConfig:
    if not isinstance(data, dict):
        raise ValueError("Configuration must be a JSON object")

    known = {f.name for f in fields(MoverConfig)}
    unknown = [key for key in data if key not in known]
    if unknown:
        raise ValueError(f"Unknown configuration options: {', '.join(unknown)}")

    options = dict(data)
    options["tasks"] = [task_from_dict(task) for task in data.get("tasks", [])]

    return MoverConfig(**options)


def load_config(path: str, logger: logging.Logger | None = None) -> MoverConfig:
    logger = logger or logging.getLogger(__name__)

    try:
        with open(path, "r", encoding="utf-8") as config_file:
            raw_data = json.load(config_file)
    except json.JSONDecodeError as e:
        raise ValueError(f"Could not parse configuration file {path}: {e}") from e

    config = config_from_dict(raw_data)
    logger.debug(f"Loaded {len(config.tasks)} tasks from {path}")

    return config

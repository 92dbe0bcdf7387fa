import logging

from typing import Dict, List

from ..utils.data_structs import MediaFileInput


SMALL_FILE_THRESHOLD = 1024 * 1024


class DedupSelector:
    """
        Drops subtitle files with content identical to an earlier one.
        Only files smaller than 'small_file_threshold' are compared, bigger ones are assumed to be unique.
    """

    def __init__(self, small_file_threshold: int = SMALL_FILE_THRESHOLD, logger: logging.Logger | None = None) -> None:
        self.small_file_threshold = small_file_threshold
        self.logger = logger or logging.getLogger(__name__)

    def select(self, files: List[MediaFileInput]) -> List[MediaFileInput]:
        selected = []
        seen: Dict[str, MediaFileInput] = {}

        for file in files:
            if file.size >= self.small_file_threshold:
                selected.append(file)
                continue

            original = seen.get(file.content_hash)
            if original is None:
                seen[file.content_hash] = file
                selected.append(file)
            else:
                self.logger.debug(f"Skipping {file.path} as it is a duplicate of {original.path}")

        return selected

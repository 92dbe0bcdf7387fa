import logging
import re

from pathlib import Path


SEASON_PATTERN = re.compile(r"S(?P<season>\d+)")
EPISODE_PATTERN = re.compile(r"[Ee](?P<episode>\d+)")

# 'Folge_12_Some_Title_(S01_E03)'
TITLE_PATTERN = re.compile(r"(?:Folge_\d+)?[_\-\s]{0,2}(?P<title>.+?)\((?P<scode>S\d+[_\-\s/]{0,3}E\d+)\)")
# 'Some Title S01E03'
FALLBACK_PATTERN = re.compile(r"\(?(?P<scode>S\d+[_\-\s/]{0,3}E\d+)\)?")
SEPARATORS = re.compile(r"[-_,\s]+")

TITLE_EDGE_CHARACTERS = " -_,"
UNWANTED_EDGE_CHARACTERS = " -_,:;()[]{}&"


def extract_season(name: str) -> int | None:
    match = SEASON_PATTERN.search(name)
    if match:
        return int(match.group("season"))

    logging.warning(f"No season number found in: {name}")
    return None


def extract_episode(name: str) -> int | None:
    match = EPISODE_PATTERN.search(name)
    if match:
        return int(match.group("episode"))

    logging.warning(f"No episode number found in: {name}")
    return None


def _clean_title(title: str) -> str:
    title = SEPARATORS.sub(" ", title.strip(TITLE_EDGE_CHARACTERS))
    return title.strip(UNWANTED_EDGE_CHARACTERS)


def normalize_title(name: str) -> str:
    """
        Turn file name into a human readable episode title:
        'Folge_3_Der_Fall_-_Teil_2_(S01E03).mp4' becomes 'Der Fall Teil 2'.
    """
    stem = Path(name).stem

    match = TITLE_PATTERN.search(stem)
    if match:
        return _clean_title(match.group("title"))

    match = FALLBACK_PATTERN.search(stem)
    if match:
        remaining = re.sub(re.escape(match.group(0)), "", stem, flags=re.IGNORECASE)
        return _clean_title(remaining)

    return stem.strip(UNWANTED_EDGE_CHARACTERS)

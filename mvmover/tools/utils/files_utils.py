import errno
import logging
import os
import shutil
import uuid

from pathlib import Path
from typing import List, Tuple

from .data_structs import FileKind


VIDEO_EXTENSIONS = ["mp4", "mkv", "avi", "mov"]
SUBTITLE_EXTENSIONS = ["srt", "ass", "ssa"]
# known sidecars which cannot be merged but belong to an episode
UNSUPPORTED_EXTENSIONS = ["ttml", "jpg", "txt"]


def split_path(path: str) -> Tuple[str, str, str]:
    info = Path(path)

    return str(info.parent), info.stem, info.suffix[1:]


def classify(path: str) -> FileKind | None:
    extension = Path(path).suffix[1:].lower()

    if extension in VIDEO_EXTENSIONS:
        return FileKind.VIDEO
    elif extension in SUBTITLE_EXTENSIONS:
        return FileKind.SUBTITLE
    elif extension in UNSUPPORTED_EXTENSIONS:
        return FileKind.UNSUPPORTED
    else:
        return None


def collect_files(path: str) -> List[str]:
    results = []
    for cd, _, files in os.walk(path, followlinks = True):
        for file in files:
            results.append(os.path.join(cd, file))

    return sorted(results)


class ScopedFile:
    """
        Path of a file which is removed (if it exists) when the scope is left.
    """
    def __init__(self, path: str):
        self.path = path

    def __enter__(self):
        return self.path

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass


def get_unique_file_name(directory: str, extension: str) -> str:
    while True:
        file_name = f"{uuid.uuid4().hex}.{extension}"
        full_path = os.path.join(directory, file_name)

        if not os.path.exists(full_path):
            return full_path


def move_atomically(source: str, destination: str) -> None:
    """
        Move 'source' to 'destination' so that 'destination' either does not exist or is complete.
        An existing 'destination' is never overwritten, FileExistsError is raised instead.
        When both paths are on different filesystems the file is first copied next to 'destination'.
    """
    if os.path.exists(destination):
        raise FileExistsError(errno.EEXIST, "Destination already exists", destination)

    try:
        # link fails with EEXIST when destination appeared in the meantime
        os.link(source, destination)
    except OSError as e:
        if e.errno in (errno.EPERM, errno.ENOTSUP, errno.EOPNOTSUPP):
            logging.debug(f"Hard links not supported for {destination}, renaming")
            os.rename(source, destination)
            return
        elif e.errno != errno.EXDEV:
            raise
    else:
        os.remove(source)
        return

    directory, name, _ = split_path(destination)
    partial = os.path.join(directory, f".{name}.{uuid.uuid4().hex}.partial")

    with ScopedFile(partial):
        logging.debug(f"Copying {source} to {partial} as it is located on another filesystem")
        shutil.copy2(source, partial)
        os.link(partial, destination)

    os.remove(source)


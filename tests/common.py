import hashlib
import inspect
import json
import logging
import os
import shutil
import tempfile
import time
import unittest

from contextlib import contextmanager
from overrides import override
from typing import Dict, List
from unittest.mock import patch

import mvmover.mvmover
from mvmover.tools.move import Mover
from mvmover.tools.utils import files_utils, generic_utils, process_utils
from mvmover.tools.utils.config_utils import MoverConfig
from mvmover.tools.utils.data_structs import MoverTask, StreamPlan
from mvmover.tools.utils.language_utils import CldrLocaleCatalog
from mvmover.tools.utils.video_utils import MuxingEngine


generic_utils.DISABLE_PROGRESSBARS = True

# loading is expensive, share one catalog between all tests
CATALOG = CldrLocaleCatalog()

MB = 1024 * 1024


class WorkingDirectoryForTest:
    def __init__(self, class_name: str | None = None, test_name: str | None = None):
        self.directory = None
        self.class_name = class_name
        self.test_name = test_name

    @property
    def path(self):
        return self.directory

    def __enter__(self):
        cname = self.class_name
        tname = self.test_name
        if cname is None or tname is None:
            stack_level = inspect.stack()[1]
            frame = stack_level.frame
            if cname is None:
                if 'self' in frame.f_locals:
                    cname = frame.f_locals['self'].__class__.__name__
                elif 'cls' in frame.f_locals:
                    cname = frame.f_locals['cls'].__name__
                else:
                    cname = ""
            if tname is None:
                tname = stack_level.function

        self.directory = os.path.join(tempfile.gettempdir(), "mvmover_tests", cname, tname)
        if os.path.exists(self.directory):
            shutil.rmtree(self.directory)

        os.makedirs(self.directory, exist_ok=True)
        return self

    def __exit__(self, type, value, traceback):
        shutil.rmtree(self.directory, ignore_errors=True)


class MvMoverTestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        logging.getLogger().setLevel(logging.CRITICAL)
        cls.logger = logging.getLogger(cls.__name__)

    def setUp(self):
        super().setUp()
        self.logger = self.__class__.logger
        self.wd = WorkingDirectoryForTest(self.__class__.__name__, self._testMethodName)
        self.wd.__enter__()

    def tearDown(self):
        self.wd.__exit__(None, None, None)
        super().tearDown()

    def make_dir(self, *parts: str) -> str:
        path = os.path.join(self.wd.path, *parts)
        os.makedirs(path, exist_ok=True)
        return path


class FakeMuxingEngine(MuxingEngine):
    """Writes 'output_size' bytes instead of merging anything. Remembers all plans."""

    def __init__(self, output_size: int = 2 * MB, error: Exception | None = None):
        self.output_size = output_size
        self.error = error
        self.calls: List[StreamPlan] = []
        self.outputs: List[str] = []

    @override
    def mux(self, plan: StreamPlan, output_path: str, should_stop: generic_utils.StopPredicate = generic_utils.never_stop) -> None:
        self.calls.append(plan)
        self.outputs.append(output_path)

        with open(output_path, "wb") as f:
            f.write(b"\0" * self.output_size)

        if self.error is not None:
            raise self.error


def age_file(path: str, seconds: float = 2 * 60 * 60) -> str:
    timestamp = time.time() - seconds
    os.utime(path, (timestamp, timestamp))
    return path


def write_file(path: str, content: bytes | str = b"data", *, age: float | None = 2 * 60 * 60) -> str:
    os.makedirs(os.path.dirname(path), exist_ok=True)

    if isinstance(content, str):
        content = content.encode("utf-8")

    with open(path, "wb") as f:
        f.write(content)

    if age is not None:
        age_file(path, age)

    return path


def write_subtitle(path: str, lines: list[str], *, encoding: str = "utf-8", age: float | None = 2 * 60 * 60) -> str:
    content = "".join(line if line.endswith("\n") else line + "\n" for line in lines)
    return write_file(path, content.encode(encoding), age=age)


def list_files(path: str) -> List[str]:
    results = []

    for root, _, files in os.walk(path):
        for filename in files:
            filepath = os.path.join(root, filename)

            if os.path.isfile(filepath):
                results.append(filepath)

    return sorted(results)


def hashes(path: str) -> Dict[str, str]:
    results = {}

    files = list_files(path)

    for filepath in files:
        with open(filepath, "rb") as f:
            file_hash = hashlib.md5()
            while chunk := f.read(8192):
                file_hash.update(chunk)

            results[filepath] = file_hash.hexdigest()

    return results


def build_config(tasks: List[MoverTask], **options) -> MoverConfig:
    options.setdefault("grace_period_seconds", 0)
    options.setdefault("min_output_size", MB)
    return MoverConfig(tasks=tasks, **options)


def build_mover(testcase: MvMoverTestCase, config: MoverConfig, engine: MuxingEngine, dry_run: bool = False) -> Mover:
    mover = Mover(config,
                  working_dir=os.path.join(testcase.wd.path, "working_dir"),
                  logger=testcase.logger,
                  dry_run=dry_run,
                  engine=engine,
                  catalog=CATALOG,
                  watch_changes=False)
    testcase.addCleanup(mover.close)
    return mover


def write_config(path: str, tasks: List[MoverTask], **options) -> str:
    data = dict(options)
    data["tasks"] = [
        {
            "title": task.title,
            "min_version_count": task.min_version_count,
            "source_folder": task.source_folder,
            "target_folder": task.target_folder,
        }
        for task in tasks
    ]

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=4)

    return path


def run_mvmover(tool: str, tool_options = [], global_options = None, working_dir: str | None = None):
    if global_options is None:
        global_options = []

    for opt in global_options:
        if opt in ("-w", "--working-dir") or opt.startswith("--working-dir=") or opt.startswith("-w="):
            raise ValueError("Tests must not override working directory")

    wd = working_dir or generic_utils.get_mvmover_working_dir()
    os.makedirs(wd, exist_ok=True)

    global_options.extend(["--quiet", "--working-dir", wd])

    mvmover.mvmover.execute([*global_options, tool, *tool_options])


def mkvmerge_identify_output(tracks: List[str]) -> str:
    return json.dumps({"tracks": [{"id": tid, "type": track_type} for tid, track_type in enumerate(tracks)]})


@contextmanager
def simulate_mkvmerge(tracks: Dict[str, List[str]] | None = None, returncode: int = 0, output_size: int = 2 * MB):
    """
        Replace mkvmerge calls with a fake.
        'tracks' maps file names to track types reported by 'mkvmerge -J' (video + audio by default).
        Muxing writes 'output_size' bytes to the output file and returns 'returncode'.
    """
    tracks = tracks or {}

    def fake(cmd, args, show_progress = False, should_stop = generic_utils.never_stop):
        _, exec_name, _ = files_utils.split_path(cmd)
        assert exec_name == "mkvmerge", f"Unexpected process: {cmd}"

        if args[0] == "-J":
            file_tracks = tracks.get(os.path.basename(args[1]), ["video", "audio"])
            return process_utils.ProcessResult(0, mkvmerge_identify_output(file_tracks), "")

        output = args[args.index("-o") + 1]
        if returncode in [0, 1]:
            with open(output, "wb") as f:
                f.write(b"\0" * output_size)

        return process_utils.ProcessResult(returncode, "", "fake error" if returncode > 1 else "")

    with patch("mvmover.tools.utils.process_utils.start_process", side_effect=fake) as p:
        yield p

import logging
import os
import queue
import re
import shutil
import signal
import subprocess
import threading
from dataclasses import dataclass
from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm
from typing import IO, Callable, List

from . import generic_utils

POLL_INTERVAL = 0.5


@dataclass
class ProcessResult:
    returncode: int
    stdout: str
    stderr: str


def _kill(sub_process: subprocess.Popen) -> None:
    try:
        os.killpg(os.getpgid(sub_process.pid), signal.SIGTERM)
    except ProcessLookupError:
        pass

    sub_process.wait()


def _wait_for(sub_process: subprocess.Popen, should_stop: generic_utils.StopPredicate) -> tuple[str, str]:
    while True:
        try:
            return sub_process.communicate(timeout=POLL_INTERVAL)
        except subprocess.TimeoutExpired:
            if should_stop():
                logging.debug(f"Stopping process {sub_process.pid}")
                _kill(sub_process)
                raise generic_utils.OperationCancelled()


def _drain(stream: IO[str], lines: List[str], on_line: Callable[[str], None] | None = None) -> None:
    for line in stream:
        lines.append(line)
        if on_line:
            on_line(line)


def _wait_with_progress(sub_process: subprocess.Popen, should_stop: generic_utils.StopPredicate) -> tuple[str, str]:
    # pipes are drained by threads, stop requests are checked every POLL_INTERVAL
    progress_pattern = re.compile(r"\w:\s*(\d+)%")
    updates: queue.Queue[int] = queue.Queue()
    stdout: List[str] = []
    stderr: List[str] = []

    def on_line(line: str) -> None:
        match = progress_pattern.search(line.strip())
        if match:
            updates.put(int(match.group(1)))

    readers = [
        threading.Thread(target=_drain, args=(sub_process.stdout, stdout, on_line), daemon=True),
        threading.Thread(target=_drain, args=(sub_process.stderr, stderr), daemon=True),
    ]
    for reader in readers:
        reader.start()

    with logging_redirect_tqdm(), \
         tqdm(desc="Muxing", unit="%", total=100, **generic_utils.get_tqdm_defaults()) as pbar:
        last_progress = 0
        while True:
            if should_stop():
                logging.debug(f"Stopping process {sub_process.pid}")
                _kill(sub_process)
                raise generic_utils.OperationCancelled()

            try:
                current_progress = updates.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                if sub_process.poll() is not None and not any(reader.is_alive() for reader in readers) and updates.empty():
                    break
                continue

            pbar.update(current_progress - last_progress)
            last_progress = current_progress

    sub_process.wait()
    return "".join(stdout), "".join(stderr)


def start_process(process: str,
                  args: List[str],
                  show_progress = False,
                  should_stop: generic_utils.StopPredicate = generic_utils.never_stop) -> ProcessResult:
    command = [process]
    command.extend(args)

    logging.debug(f"Starting {process} with options: {' '.join(args)}")
    sub_process = subprocess.Popen(
        command, stdout=subprocess.PIPE, stderr=subprocess.PIPE, universal_newlines=True, bufsize=1, preexec_fn=os.setsid)

    if show_progress and process == "mkvmerge":
        stdout, stderr = _wait_with_progress(sub_process, should_stop)
    else:
        stdout, stderr = _wait_for(sub_process, should_stop)

    logging.debug(f"Process finished with {sub_process.returncode}")

    return ProcessResult(sub_process.returncode, str(stdout), str(stderr))


def raise_on_error(status: ProcessResult):
    if status.returncode != 0:
        raise RuntimeError(f"Process exited with unexpected error:\n{status.stdout}\n{status.stderr}")


def ensure_tools_exist(tools: List[str], logger: logging.Logger) -> None:
    """Verify that all required external tools are available."""
    for tool in tools:
        path = shutil.which(tool)
        if path is None:
            raise RuntimeError(f"{tool} not found in PATH")
        logger.debug(f"{tool} path: {path}")

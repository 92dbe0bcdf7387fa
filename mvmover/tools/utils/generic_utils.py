import logging
import os
import signal
import sys
import time

from platformdirs import user_cache_dir
from typing import Callable


DISABLE_PROGRESSBARS = False

StopPredicate = Callable[[], bool]


class OperationCancelled(Exception):
    pass


def hide_progressbar() -> bool:
    return not sys.stdout.isatty() or DISABLE_PROGRESSBARS


def get_tqdm_defaults():
    return {
    'leave': False,
    'smoothing': 0.1,
    'mininterval':.2,
    'disable': hide_progressbar()
}


def get_mvmover_working_dir() -> str:
    return os.path.join(user_cache_dir("mvmover"), "working_dir")


def never_stop() -> bool:
    return False


def wait(seconds: float, should_stop: StopPredicate, step: float = 0.25) -> bool:
    """
        Sleep for 'seconds' but wake up early when 'should_stop' becomes true.
        Returns False if the wait was interrupted.
    """
    deadline = time.monotonic() + seconds
    while True:
        if should_stop():
            return False

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return True

        time.sleep(min(step, remaining))


class InterruptibleProcess:
    def __init__(self):
        self._work = True
        signal.signal(signal.SIGINT, self.exit_gracefully)
        signal.signal(signal.SIGTERM, self.exit_gracefully)

    def exit_gracefully(self, signum, frame):
        logging.info(f"Got signal #{signum}. Exiting soon.")
        self._work = False

    def stop_requested(self) -> bool:
        return not self._work

"""OS process-table access used by the process-tree controller.

Process ids are recycled by the OS: nothing here caches a pid-to-process
mapping. Every call re-resolves the pid, and "no such process" is treated as
an expected, benign outcome.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import List, Optional

import psutil

from ..utils.error_handling import log_and_ignore
from . import win32

logger = logging.getLogger(__name__)


class ProcessTable(ABC):
    """Sync-point API over the platform process table."""

    #: Whether ``children_of`` is backed by a real process-table query
    supports_enumeration: bool = True
    #: Whether window lookup and foreground activation are available
    supports_foreground: bool = False

    @abstractmethod
    def children_of(self, pid: int) -> List[int]:
        """Point-in-time snapshot of the direct children of ``pid``.

        Returns an empty list if ``pid`` no longer exists.
        """

    @abstractmethod
    def terminate(self, pid: int) -> bool:
        """Kill ``pid``. Returns False if it was already gone or inaccessible."""

    @abstractmethod
    def main_window_handle(self, pid: int) -> Optional[int]:
        """Main window handle of ``pid``, or None."""

    @abstractmethod
    def set_foreground(self, handle: int) -> bool:
        """Request that the window become the foreground window."""

    def own_pid(self) -> int:
        return os.getpid()


class PsutilProcessTable(ProcessTable):
    """Process table backed by psutil, with Win32 window operations."""

    supports_enumeration = True

    def __init__(self):
        self.supports_foreground = win32.is_supported()

    def children_of(self, pid: int) -> List[int]:
        try:
            return [child.pid for child in psutil.Process(pid).children(recursive=False)]
        except psutil.NoSuchProcess:
            return []
        except psutil.AccessDenied as e:
            log_and_ignore(e, f"Cannot list children of process {pid}", logger_instance=logger)
            return []

    def terminate(self, pid: int) -> bool:
        try:
            psutil.Process(pid).kill()
            return True
        except psutil.NoSuchProcess as e:
            # Also covers ZombieProcess
            log_and_ignore(e, f"Process {pid} already exited", logger_instance=logger,
                           level=logging.DEBUG)
        except psutil.AccessDenied as e:
            log_and_ignore(e, f"Not allowed to kill process {pid}", logger_instance=logger)
        return False

    def main_window_handle(self, pid: int) -> Optional[int]:
        if not psutil.pid_exists(pid):
            return None
        return win32.find_main_window(pid)

    def set_foreground(self, handle: int) -> bool:
        return win32.set_foreground_window(handle)

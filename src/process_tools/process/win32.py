"""Win32 window helpers: main-window lookup, foreground, activation broadcast.

Thin ctypes wrappers over user32. Every entry point raises
UnsupportedPlatformError off Windows.
"""

import ctypes
import logging
import sys
from typing import List, Optional

from ..errors.exceptions import UnsupportedPlatformError

logger = logging.getLogger(__name__)

HWND_BROADCAST = 0xFFFF
GW_OWNER = 4
SW_RESTORE = 9

# Registered message asking an already-running instance to activate itself
SHOW_ME_MESSAGE = "WM_SHOWME"


def is_supported() -> bool:
    return sys.platform == "win32"


def _user32(operation: str):
    if not is_supported():
        raise UnsupportedPlatformError(operation, sys.platform)
    return ctypes.windll.user32


def find_main_window(pid: int) -> Optional[int]:
    """
    Find the main window of a process.

    The main window is the first visible, unowned top-level window the
    process created.

    Args:
        pid: Process identifier

    Returns:
        Window handle, or None if the process has no such window
    """
    user32 = _user32("Main window lookup")
    from ctypes import wintypes

    found: List[int] = []
    enum_proc_type = ctypes.WINFUNCTYPE(wintypes.BOOL, wintypes.HWND, wintypes.LPARAM)

    def _visit(hwnd, _lparam):
        owner_pid = wintypes.DWORD()
        user32.GetWindowThreadProcessId(hwnd, ctypes.byref(owner_pid))
        if (
            owner_pid.value == pid
            and user32.IsWindowVisible(hwnd)
            and not user32.GetWindow(hwnd, GW_OWNER)
        ):
            found.append(hwnd)
            return False  # Stop enumeration
        return True

    user32.EnumWindows(enum_proc_type(_visit), 0)
    return found[0] if found else None


def set_foreground_window(handle: int) -> bool:
    """Restore a minimized window and ask for it to become the foreground window."""
    user32 = _user32("Foreground window activation")
    hwnd = ctypes.c_void_p(handle)
    if user32.IsIconic(hwnd):
        user32.ShowWindow(hwnd, SW_RESTORE)
    return bool(user32.SetForegroundWindow(hwnd))


def register_window_message(name: str) -> int:
    """
    Register a system-wide message type.

    Returns:
        Message id in the range 0xC000-0xFFFF

    Raises:
        OSError: If registration fails
    """
    user32 = _user32("Window message registration")
    message_id = user32.RegisterWindowMessageW(name)
    if not message_id:
        raise ctypes.WinError()
    return message_id


def broadcast_show_me(message: str = SHOW_ME_MESSAGE) -> int:
    """
    Post the activation message to every top-level window.

    Used by a second instance of an application to ask the running one to
    bring itself to the front.

    Returns:
        The registered message id that was broadcast
    """
    user32 = _user32("Window message broadcast")
    message_id = register_window_message(message)
    if not user32.PostMessageW(ctypes.c_void_p(HWND_BROADCAST), message_id, 0, 0):
        raise ctypes.WinError()
    logger.info(f"Broadcast {message} (id {message_id:#06x}) to all top-level windows")
    return message_id

"""Translate technical errors to user-friendly messages."""

import re
from dataclasses import dataclass
from typing import List

from rich.markup import escape


@dataclass
class UserFriendlyError:
    """User-friendly error representation."""
    original_error: BaseException
    title: str
    explanation: str
    actions: List[str]
    show_technical: bool = False


class ErrorTranslator:
    """Translate technical errors to user-friendly messages."""

    ERROR_PATTERNS = {
        r"UnsupportedPlatformError": {
            "title": "Not available on this platform",
            "explanation": "The requested operation needs an OS capability this platform does not provide.",
            "actions": [
                "Window activation and message broadcast require Windows",
                "Use 'process-tools reap' for process trees on other platforms",
            ],
        },
        r"WorkerStateError": {
            "title": "Worker is in the wrong state",
            "explanation": "The worker cannot perform this operation in its current state.",
            "actions": [
                "Wait for the running generation to finish before starting again",
                "Start the worker before joining it",
            ],
        },
        r"NoSuchProcess|process.*not.*found|no process found": {
            "title": "Process not found",
            "explanation": "The process id does not refer to a running process. It may already have exited.",
            "actions": [
                "Check the process id and try again",
            ],
        },
        r"AccessDenied|permission.*denied|access.*denied": {
            "title": "Permission denied",
            "explanation": "The operating system refused access to the process.",
            "actions": [
                "Run with the same user as the target process",
                "Or run with elevated privileges",
            ],
        },
        r"config.*not.*found|validation error": {
            "title": "Invalid configuration",
            "explanation": "The configuration file could not be loaded.",
            "actions": [
                "Check the YAML file passed with --config",
                "Waits must be >= 0 and rounds >= 1",
            ],
        },
    }

    def translate(self, error: BaseException) -> UserFriendlyError:
        """Convert exception to user-friendly format."""
        error_str = str(error)
        error_type = type(error).__name__
        full_error = f"{error_type}: {error_str}"

        for pattern, translation in self.ERROR_PATTERNS.items():
            if re.search(pattern, full_error, re.IGNORECASE):
                return UserFriendlyError(
                    original_error=error,
                    title=translation["title"],
                    explanation=translation["explanation"],
                    actions=translation["actions"],
                    show_technical=True,
                )

        # Fallback for unknown errors
        return UserFriendlyError(
            original_error=error,
            title="Unexpected error",
            explanation=error_str or error_type,
            actions=[
                "Re-run with --log-level DEBUG for details",
            ],
            show_technical=True,
        )

    def format_for_cli(self, friendly_error: UserFriendlyError) -> str:
        """Format error for CLI display."""
        output = f"[bold red]{friendly_error.title}[/]\n\n"
        output += f"{friendly_error.explanation}\n\n"

        output += "[bold]How to fix:[/]\n"
        for i, action in enumerate(friendly_error.actions, 1):
            output += f"  {i}. {action}\n"

        if friendly_error.show_technical:
            output += f"\n[dim]Technical details:[/]\n[dim]{escape(str(friendly_error.original_error))}[/]"

        return output

"""Tests for ErrorTranslator: verifies user-friendly error messages."""

import psutil
import pytest
from pydantic import ValidationError

from process_tools.core.config import ProcessTreeConfig
from process_tools.errors.exceptions import UnsupportedPlatformError, WorkerStateError
from process_tools.errors.translator import ErrorTranslator, UserFriendlyError


@pytest.fixture
def translator():
    return ErrorTranslator()


class TestTranslation:
    def test_unsupported_platform(self, translator):
        error = UnsupportedPlatformError("Window message broadcast", "linux")

        result = translator.translate(error)

        assert isinstance(result, UserFriendlyError)
        assert result.title == "Not available on this platform"
        assert result.original_error is error
        assert len(result.actions) > 0

    def test_worker_state(self, translator):
        result = translator.translate(WorkerStateError("Worker DemoThread is already running"))
        assert result.title == "Worker is in the wrong state"

    def test_no_such_process(self, translator):
        result = translator.translate(psutil.NoSuchProcess(4242))
        assert result.title == "Process not found"

    def test_access_denied(self, translator):
        result = translator.translate(psutil.AccessDenied(1))
        assert result.title == "Permission denied"

    def test_permission_denied_message(self, translator):
        result = translator.translate(PermissionError("Permission denied"))
        assert result.title == "Permission denied"

    def test_config_validation_error(self, translator):
        with pytest.raises(ValidationError) as exc_info:
            ProcessTreeConfig(reap_rounds=0)

        result = translator.translate(exc_info.value)

        assert result.title == "Invalid configuration"

    def test_unknown_error_falls_back(self, translator):
        result = translator.translate(RuntimeError("something odd"))

        assert result.title == "Unexpected error"
        assert result.explanation == "something odd"
        assert any("DEBUG" in action for action in result.actions)

    def test_unknown_error_without_message_uses_type(self, translator):
        result = translator.translate(RuntimeError())
        assert result.explanation == "RuntimeError"


class TestFormatting:
    def test_format_for_cli_lists_actions(self, translator):
        friendly = translator.translate(WorkerStateError("Worker W has not been started"))

        output = translator.format_for_cli(friendly)

        assert "Worker is in the wrong state" in output
        assert "How to fix:" in output
        assert "  1. " in output
        assert "Technical details:" in output
        assert "Worker W has not been started" in output

    def test_technical_details_are_markup_escaped(self, translator):
        friendly = translator.translate(RuntimeError("bad [bold]value[/bold]"))

        output = translator.format_for_cli(friendly)

        assert "\\[bold]" in output

    def test_technical_details_can_be_hidden(self, translator):
        friendly = UserFriendlyError(
            original_error=RuntimeError("hidden"),
            title="Title",
            explanation="Explanation",
            actions=["Do something"],
        )

        output = translator.format_for_cli(friendly)

        assert "hidden" not in output
        assert "Technical details" not in output

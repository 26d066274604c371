"""Unit tests for the rich console listener."""

import pytest
from rich.console import Console

from livelingo.models.audio import AudioDevice
from livelingo.ui.console import ConsoleListener, level_bar, print_devices


@pytest.fixture
def console():
    return Console(record=True, width=100, color_system=None)


@pytest.mark.unit
class TestConsoleListener:
    """Test cases for console output."""

    def test_level_bar(self):
        assert level_bar(0) == " " * 20
        assert level_bar(50) == "█" * 10 + " " * 10
        assert level_bar(150) == "█" * 20
        assert level_bar(-5) == " " * 20

    def test_events_are_printed(self, console):
        listener = ConsoleListener(console=console, source_language="English",
                                   target_language="Japanese")

        listener.on_connect()
        listener.on_transcription("Hello world.")
        listener.on_translation("こんにちは世界。")
        listener.on_error(RuntimeError("boom"))
        listener.on_disconnect("Connection closed by server")

        output = console.export_text()
        assert "English Hello world." in output
        assert "Japanese こんにちは世界。" in output
        assert "boom" in output
        assert "Connection closed by server" in output
        assert listener.connected is False

    def test_peak_level(self, console):
        listener = ConsoleListener(console=console)
        for level in (10.0, 42.0, 5.0):
            listener.on_level(level)

        listener.show_level_summary()

        assert listener.peak_level == 42.0
        assert "42%" in console.export_text()

    def test_print_devices(self, console):
        print_devices([AudioDevice(0, "Built-in Microphone"), AudioDevice(2, "Microphone 2")], console)
        output = console.export_text()
        assert "Built-in Microphone" in output
        assert "Microphone 2" in output

    def test_print_no_devices(self, console):
        print_devices([], console)
        assert "No audio input devices found" in console.export_text()

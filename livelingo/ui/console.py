"""Console listener printing conversation events with rich."""

import logging
from typing import List

from rich.console import Console
from rich.table import Table

from ..models.audio import AudioDevice
from ..services.callbacks import AssistantListener

logger = logging.getLogger(__name__)

LEVEL_BAR_WIDTH = 20


def level_bar(level: float, width: int = LEVEL_BAR_WIDTH) -> str:
    """Text meter for a level percentage."""
    filled = int(max(0.0, min(100.0, level)) / 100.0 * width)
    return "█" * filled + " " * (width - filled)


class ConsoleListener(AssistantListener):
    """Prints transcriptions and translations as they arrive."""

    def __init__(self, console: Console = None,
                 source_language: str = "English",
                 target_language: str = "Japanese"):
        self.console = console or Console()
        self.source_language = source_language
        self.target_language = target_language
        self.peak_level = 0.0
        self.connected = False

    def on_connect(self) -> None:
        self.connected = True
        self.console.print("✅ Connected - listening, speak naturally", style="green")

    def on_transcription(self, text: str) -> None:
        self.console.print(f"[bold blue]{self.source_language}[/bold blue] {text}")

    def on_translation(self, text: str) -> None:
        self.console.print(f"[bold magenta]{self.target_language}[/bold magenta] {text}")

    def on_error(self, error: Exception) -> None:
        self.console.print(f"❌ Error: {error}", style="bold red")

    def on_disconnect(self, reason: str) -> None:
        self.connected = False
        self.console.print(f"Connection lost ({reason}). Please restart the session.", style="yellow")

    def on_level(self, level: float) -> None:
        self.peak_level = max(self.peak_level, level)

    def show_level_summary(self) -> None:
        self.console.print(f"Peak audio: [{level_bar(self.peak_level)}] {self.peak_level:.0f}%")


def print_devices(devices: List[AudioDevice], console: Console = None) -> None:
    """Print the available input devices as a table."""
    console = console or Console()
    if not devices:
        console.print("No audio input devices found", style="red")
        return

    table = Table(title="Audio input devices")
    table.add_column("ID", justify="right")
    table.add_column("Label")
    for device in devices:
        table.add_row(str(device.device_id), device.label)
    console.print(table)

"""Main application entry point for LiveLingo."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from livelingo.audio.capture import AudioCapture
from livelingo.services.orchestrator import Orchestrator
from livelingo.transcription.gemini_live import (
    DEFAULT_MODEL,
    GeminiLiveTransport,
    default_system_instruction,
)
from livelingo.transcription.rest_translator import GeminiRestTranslator
from livelingo.ui.console import ConsoleListener, print_devices

from .config import LiveLingoConfig

logger = logging.getLogger(__name__)


class Server:

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        # Load configuration
        self.config = LiveLingoConfig(config_path)
        # Set up logging (override config with command line if specified)
        level = log_level or self.config.get('logging.level', 'INFO')
        setup_logging(self.config, level)
        self.should_exit = False

    def init(self):
        logger.info("Initializing services...")

        api_key = self.config.get_api_key()
        source_language = self.config.get('translation.source_language', 'English')
        target_language = self.config.get('translation.target_language', 'Japanese')
        sample_rate = self.config.get('audio.sample_rate', 16000)

        logger.info(f"Language pair: {source_language} -> {target_language}, {sample_rate}Hz")

        self.transport = GeminiLiveTransport(
            api_key=api_key,
            model=self.config.get('gemini.model', DEFAULT_MODEL),
            sample_rate=sample_rate,
            system_instruction=self.config.get(
                'gemini.system_instruction',
                default_system_instruction(source_language, target_language),
            ),
        )

        translator = None
        if self.config.get('translation.mode', 'live') == 'rest':
            translator = GeminiRestTranslator(
                api_key=api_key,
                model=self.config.get('translation.rest_model', 'gemini-1.5-flash'),
            )

        self.listener = ConsoleListener(source_language=source_language,
                                        target_language=target_language)
        self.orchestrator = Orchestrator(
            transport=self.transport,
            listener=self.listener,
            config=self.config,
            translator=translator,
        )

    async def run(self, device_id: Optional[int], duration: Optional[int]):
        try:
            started = await self.orchestrator.start(device_id)
            if not started:
                logger.error("Session did not start")
                return
            elapsed = 0
            while self.orchestrator.is_recording and not self.should_exit:
                if duration and elapsed >= duration:
                    break
                await asyncio.sleep(1)
                elapsed += 1
        finally:
            await self.cleanup()

    async def cleanup(self):
        await self.orchestrator.stop()
        self.listener.show_level_summary()
        summary = self.orchestrator.history.get_summary()
        logger.info(f"Conversation: {summary['transcriptions']} transcriptions, "
                    f"{summary['translations']} translations")
        self.orchestrator.close()


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/livelingo.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger = logging.getLogger(__name__)
    logger.info("="*50)
    logger.info("LiveLingo application starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("="*50)


def main() -> None:
    """Main entry point for LiveLingo application."""
    parser = argparse.ArgumentParser(
        description="LiveLingo - Real-time meeting transcription and translation",
        epilog="Press Ctrl+C to stop the session"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (defaults apply when omitted)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (overrides config)"
    )

    parser.add_argument(
        "--device",
        type=int,
        help="Input device ID (see --list-devices)"
    )

    parser.add_argument(
        "--duration",
        type=int,
        help="Stop automatically after this many seconds"
    )

    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List audio input devices and exit"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="LiveLingo v0.1.0"
    )

    args = parser.parse_args()

    if args.list_devices:
        print_devices(AudioCapture.list_input_devices())
        return

    server = Server(args.config, args.log_level)
    try:
        server.init()
        device_id = args.device if args.device is not None else server.config.get('audio.device_id')
        asyncio.run(server.run(device_id, args.duration))
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

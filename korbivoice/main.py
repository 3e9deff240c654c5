"""Command line entry point for korbivoice."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console

from . import __version__
from .config import KorbiVoiceConfig
from .exceptions import VoiceSessionError
from .models.state import VoicePhase, VoiceSessionState
from .services.state_publisher import VoiceStatePublisher
from .services.voice_session import VoiceSessionController
from .ui.status_display import StatusDisplay

logger = logging.getLogger(__name__)


class Server:

    def __init__(self, config_path: str, log_level: Optional[str] = None):
        # Load configuration
        self.config = KorbiVoiceConfig(config_path)
        # Command line level wins over the config file
        level = log_level or self.config.get('logging.level', 'INFO')
        setup_logging(self.config, level)
        self.console = Console()
        self.controller: Optional[VoiceSessionController] = None
        self.display: Optional[StatusDisplay] = None

    def init(self):
        logger.info("Initializing voice session controller...")
        publisher = VoiceStatePublisher("voice.state")
        self.display = StatusDisplay(self.console)
        self.display.attach(publisher)
        self.controller = VoiceSessionController.from_config(self.config, publisher=publisher)

        fmt = self.controller.capture.recording_format
        logger.info(f"Audio settings: {fmt.sample_rate}Hz, {fmt.chunk_size} samples/chunk, {fmt.channels} channels")

    async def run(self, household_id: str, list_id: str, user_id: str,
                  duration: Optional[float]) -> VoiceSessionState:
        await self.controller.start_recording(household_id, list_id, user_id)
        if duration:
            await self._record_for(duration)
        else:
            self.console.print("Enter drücken, um die Aufnahme zu beenden.", style="dim")
            await asyncio.to_thread(sys.stdin.readline)

        if self.controller.state.phase is not VoicePhase.RECORDING:
            # capture failed while recording
            return self.controller.state
        return await self.controller.stop_recording()

    async def _record_for(self, duration: float) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration
        while loop.time() < deadline and self.controller.state.phase is VoicePhase.RECORDING:
            await asyncio.sleep(0.1)

    async def cleanup(self):
        if self.controller:
            await self.controller.shutdown()
        if self.display:
            self.display.detach()


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/korbivoice.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # rich output owns stdout
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger = logging.getLogger(__name__)
    logger.info("=" * 50)
    logger.info("korbivoice starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


async def run_session(server: Server, args: argparse.Namespace) -> VoiceSessionState:
    server.init()
    try:
        return await server.run(args.household, args.list, args.user, args.duration)
    finally:
        await server.cleanup()


def main() -> None:
    """Main entry point for korbivoice."""
    parser = argparse.ArgumentParser(
        description="korbivoice - record a shopping list item and send it to the Korbi webhook"
    )

    parser.add_argument(
        "--config",
        type=str,
        default="korbivoice.yaml",
        help="Path to configuration YAML file (default: korbivoice.yaml)"
    )

    parser.add_argument("--household", required=True, help="Household identifier")
    parser.add_argument("--list", required=True, help="Shopping list identifier")
    parser.add_argument("--user", required=True, help="User identifier")

    parser.add_argument(
        "--duration",
        type=float,
        help="Record for this many seconds instead of waiting for Enter"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, else INFO)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"korbivoice v{__version__}"
    )

    args = parser.parse_args()

    try:
        server = Server(args.config, args.log_level)
        state = asyncio.run(run_session(server, args))
    except KeyboardInterrupt:
        print("\n👋 Aufnahme abgebrochen")
        sys.exit(130)
    except VoiceSessionError as e:
        print(f"❌ {e.user_message}")
        logging.error(f"Application error: {e.message}")
        sys.exit(1)

    if state.phase is not VoicePhase.SUCCESS:
        sys.exit(1)


if __name__ == "__main__":
    main()

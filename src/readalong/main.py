"""
Main readalong application.
Wires the speech provider, session supervisor and web server together.
"""

import argparse
import asyncio
import contextlib
import logging
import signal
from collections.abc import Callable
from pathlib import Path

from .aligner import AlignerSettings
from .config import (
    DEFAULT_CONFIG,
    Config,
    TranscriptionConfig,
    get_aligner_settings,
    get_config_path,
    get_session_settings,
    load_config,
    save_config,
)
from .server import WebServer
from .speech_provider import SpeechProvider, SpeechProviderError
from .supervisor import SessionEvent, SessionSettings, SessionSupervisor

logger = logging.getLogger(__name__)


class ReadAlongApp:
    """
    Main readalong application that coordinates all components.
    """

    def __init__(
        self,
        transcription_config: TranscriptionConfig | None = None,
        host: str = "127.0.0.1",
        port: int = 8000,
        audio_device: int | None = None,
        chunk_ms: int = 100,
        session_settings: SessionSettings | None = None,
        aligner_settings: AlignerSettings | None = None,
        reference_text: str | None = None
    ) -> None:
        self.transcription_config: TranscriptionConfig = (
            transcription_config or DEFAULT_CONFIG["transcription"]
        )
        self.host: str = host
        self.port: int = port
        self.audio_device: int | None = audio_device
        self.chunk_ms: int = chunk_ms
        self.session_settings: SessionSettings = session_settings or SessionSettings()
        self.aligner_settings: AlignerSettings = aligner_settings or AlignerSettings()
        self.reference_text: str | None = reference_text

        self.session: SessionSupervisor | None = None
        self.server: WebServer | None = None
        self.shutdown_event: asyncio.Event | None = None

    def _on_session_event(self, event: SessionEvent) -> None:
        """Print user-facing status changes."""
        if event.kind == "state":
            print(f"Session {event.state}")
        elif event.kind == "error":
            print(f"Error: {event.error}")
        elif event.kind == "dismissed":
            print(f"Session dismissed at offset {event.cursor}")

    async def prepare_provider(self, factory: Callable[[], SpeechProvider]) -> None:
        """Load the recognition model in an executor so the event loop stays free."""
        print("Loading speech recognition model...")
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, factory().prepare)
        except SpeechProviderError as e:
            logger.warning("Speech model not loaded: %s", e)
            print(f"Warning: {e}")

    async def start(self) -> None:
        """Start the application and run until shutdown."""
        from .providers import provider_factory

        print("Starting readalong...")
        self.shutdown_event = asyncio.Event()

        factory = provider_factory(
            self.transcription_config["provider"],
            self.transcription_config["model_id"],
            model_path=self.transcription_config.get("model_path"),
            device=self.audio_device,
            chunk_ms=self.chunk_ms,
            restrict_vocabulary=bool(self.transcription_config.get("restrict_vocabulary", False)),
            history_words=self.session_settings.window_capacity,
        )
        await self.prepare_provider(factory)

        self.session = SessionSupervisor(
            factory,
            loop=asyncio.get_running_loop(),
            settings=self.session_settings,
            aligner_settings=self.aligner_settings,
        )
        self.session.subscribe(self._on_session_event)

        self.server = WebServer(self.session, host=self.host, port=self.port)
        await self.server.start()

        print("\n✓ readalong ready!")
        print(f"  WebSocket at ws://{self.host}:{self.port}/ws")
        print("  Press Ctrl+C to stop\n")

        if self.reference_text:
            self.server.reference_text = self.reference_text
            self.session.start(self.reference_text)

        await self.shutdown_event.wait()

    async def stop(self) -> None:
        """Stop the application."""
        print("\nStopping readalong...")
        if self.session:
            self.session.force_stop()
        if self.server:
            await self.server.stop()
        print("readalong stopped.")


def main() -> None:
    """Main entry point."""
    # Load config first to use as defaults
    config: Config = load_config()
    transcription_config = config.get("transcription", DEFAULT_CONFIG["transcription"])

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="readalong - live read-along cursor driven by speech recognition"
    )

    parser.add_argument(
        "--provider",
        default=transcription_config.get("provider", "vosk"),
        choices=["vosk"],
        help="Speech provider (default: from config or 'vosk')"
    )

    parser.add_argument(
        "--model-id",
        default=transcription_config.get("model_id"),
        help="Model identifier (e.g., 'vosk-ar-mgb2')"
    )

    parser.add_argument(
        "--model-path",
        default=transcription_config.get("model_path"),
        help="Path to custom model directory (optional)"
    )

    parser.add_argument(
        "--locale",
        default=config.get("session", {}).get("locale", "ar"),
        help="Recognition locale (default: from config or 'ar')"
    )

    parser.add_argument(
        "--host",
        default=config.get("host", "127.0.0.1"),
        help="Web server host (default: from config or 127.0.0.1)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=config.get("port", 8000),
        help="Web server port (default: from config or 8000)"
    )

    parser.add_argument(
        "--device", "-d",
        type=int,
        default=config.get("audio_device"),
        help="Audio input device index"
    )

    parser.add_argument(
        "--chunk-ms",
        type=int,
        default=config.get("chunk_ms", 100),
        help="Audio chunk size in milliseconds (default: from config or 100)"
    )

    parser.add_argument(
        "--reference", "-r",
        type=Path,
        default=None,
        help="Reference text file to start reading immediately"
    )

    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List available audio input devices and exit"
    )

    parser.add_argument(
        "--list-models",
        action="store_true",
        help="List all available recognition models and exit"
    )

    parser.add_argument(
        "--download-model",
        action="store_true",
        help="Download the specified model and exit"
    )

    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Save current CLI options to config file and exit"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    args: argparse.Namespace = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    # Handle special commands
    if args.list_devices:
        from .audio import list_devices
        list_devices()
        return

    if args.list_models:
        from .providers import get_all_available_models, is_model_downloaded
        print("\nAvailable recognition models:")
        print("-" * 80)
        for model in sorted(get_all_available_models(), key=lambda m: (m.provider, m.name)):
            status = "downloaded" if is_model_downloaded(model.provider, model.id) else "not downloaded"
            print(f"  {model.id}")
            print(f"    Name: {model.name}")
            print(f"    Size: {model.size_mb}MB ({status})")
            if model.description:
                print(f"    Description: {model.description}")
            print()
        return

    if args.download_model:
        from .providers import download_model_with_progress
        model_id = args.model_id or DEFAULT_CONFIG["transcription"]["model_id"]
        print(f"Downloading model: {model_id}")
        download_model_with_progress(args.provider, model_id)
        return

    if args.save_config:
        config["transcription"]["provider"] = args.provider
        if args.model_id:
            config["transcription"]["model_id"] = args.model_id
        config["transcription"]["model_path"] = args.model_path
        config["session"]["locale"] = args.locale
        config["host"] = args.host
        config["port"] = args.port
        config["audio_device"] = args.device
        config["chunk_ms"] = args.chunk_ms

        if save_config(config):
            print(f"Configuration saved to {get_config_path()}")
        return

    reference_text: str | None = None
    if args.reference:
        try:
            reference_text = args.reference.read_text(encoding="utf-8")
        except OSError as e:
            print(f"Error: Could not read reference file {args.reference}: {e}")
            raise SystemExit(1) from e

    final_transcription_config: TranscriptionConfig = {
        "provider": args.provider,
        "model_id": args.model_id or DEFAULT_CONFIG["transcription"]["model_id"],
        "model_path": args.model_path,
        "restrict_vocabulary": bool(transcription_config.get("restrict_vocabulary", False)),
    }

    config["session"]["locale"] = args.locale
    app: ReadAlongApp = ReadAlongApp(
        transcription_config=final_transcription_config,
        host=args.host,
        port=args.port,
        audio_device=args.device,
        chunk_ms=args.chunk_ms,
        session_settings=get_session_settings(config),
        aligner_settings=get_aligner_settings(config),
        reference_text=reference_text,
    )

    # Handle shutdown gracefully
    loop: asyncio.AbstractEventLoop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def shutdown(sig: int, frame: object) -> None:
        """Handle shutdown signals (SIGINT, SIGTERM) gracefully."""
        print("\nReceived shutdown signal...")
        if app.shutdown_event is not None:
            loop.call_soon_threadsafe(app.shutdown_event.set)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        pass
    finally:
        with contextlib.suppress(Exception):
            loop.run_until_complete(app.stop())
        pending: set[asyncio.Task[object]] = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.close()


if __name__ == "__main__":
    main()

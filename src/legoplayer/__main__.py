"""Command line entry point for headless playback and replay."""
import argparse
import asyncio
import json
import logging
import signal
from pathlib import Path
from typing import List, Optional

from legoplayer.config import ensure_directories, settings
from legoplayer.logging_config import setup_logging
from legoplayer.models.audio_models import AudioSchema
from legoplayer.models.base import SessionLocal, init_db
from legoplayer.monitoring import start_monitoring
from legoplayer.services.audio_service import AudioResolver, SilentAudioPlayer
from legoplayer.services.progress_service import ProgressService
from legoplayer.services.script_cache import ScriptCache
from legoplayer.services.session_service import JsonScriptProvider, LearningSession

logger = logging.getLogger("legoplayer")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="legoplayer", description="Play or replay a learning script.")
    parser.add_argument("command", choices=["play", "replay"])
    parser.add_argument("script", type=Path, help="JSON script file")
    parser.add_argument("--course", default="demo", help="Course code")
    parser.add_argument("--max-units", type=int, default=50)
    parser.add_argument("--audio-map", type=Path, help="JSON {text: {role: key}} audio map")
    parser.add_argument("--legacy-audio-map", type=Path, help="JSON audio map with legacy UUID keys")
    parser.add_argument("--speed", type=int, default=1, help="Replay speed multiplier")
    parser.add_argument("--audio-seconds", type=float, default=0.0, help="Simulated clip length for play")
    parser.add_argument("--exploratory", action="store_true", help="Use the longer exploratory pause")
    return parser.parse_args(argv)


def build_resolver(args: argparse.Namespace) -> AudioResolver:
    resolver = AudioResolver()
    for path, schema in ((args.audio_map, AudioSchema.CURRENT), (args.legacy_audio_map, AudioSchema.LEGACY)):
        if path is None:
            continue
        with path.open(encoding="utf-8") as f:
            resolver.load_audio_map(json.load(f), schema)
    return resolver


async def run(args: argparse.Namespace) -> None:
    """Run one command until it finishes or the process is signalled."""
    init_db()
    db = SessionLocal()
    try:
        session = LearningSession(
            course_code=args.course,
            provider=JsonScriptProvider(args.script),
            resolver=build_resolver(args),
            player=SilentAudioPlayer(args.audio_seconds),
            cache=ScriptCache(),
            progress=ProgressService(db),
            exploratory=args.exploratory,
        )
        session.load(max_units=args.max_units)

        loop = asyncio.get_running_loop()
        if args.command == "replay":
            replay = session.create_replay()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, replay.stop)
            replay.start(args.speed)
            await replay.wait_until_done()
            stats = replay.network.stats()
        else:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, session.stop)
            await session.play()
            stats = session.network.stats()

        logger.info(
            f"Network: {stats.total_nodes} units, {stats.total_edges} connections, "
            f"{stats.eternal_nodes} eternal, average strength {stats.avg_edge_strength:.2f}"
        )
    finally:
        logger.info("Cleaning up...")
        db.close()


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    ensure_directories()
    setup_logging("Starting legoplayer ...")

    if settings.monitoring.enabled:
        start_monitoring(settings.monitoring.port)
        logger.info(f"Metrics exported on port {settings.monitoring.port}")

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")


if __name__ == "__main__":
    main()

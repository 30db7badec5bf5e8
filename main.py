#!/usr/bin/env python3
"""
Gyro Viewer - Main Entry Point

Renders a 3D object whose orientation follows the live gyroscope stream of a
remote device, with user rotation/scale offsets and custom GLB models.

Usage:
    python main.py                                  # Endpoint from .env / default
    python main.py --endpoint http://10.0.0.5:8080  # Explicit endpoint
    python main.py --connect                        # Connect immediately
    python main.py --fps 60                         # Render rate
"""
import argparse
import logging
import sys
from typing import Optional, Sequence

from PyQt5 import QtWidgets

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from scene.model_loader import ModelLoader
from telemetry.config import load_config
from telemetry.remote import RemoteCommandWorker
from ui.main_window import MainWindow


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Live gyroscope orientation viewer")
    parser.add_argument(
        "--endpoint",
        help="Device server URL (default: GYRO_ENDPOINT_URL or http://localhost:8080)",
    )
    parser.add_argument(
        "--fps",
        type=int,
        default=None,
        help="Render frames per second (default: GYRO_FRAME_RATE or 30)",
    )
    parser.add_argument(
        "--connect",
        action="store_true",
        help="Open the telemetry stream at start-up instead of waiting for Setup",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Entry point for the viewer.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])
    """
    args = build_arg_parser().parse_args(argv)
    config = load_config(endpoint_url=args.endpoint, frame_rate=args.fps)

    # Configure logging before anything starts talking
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='[%(levelname)s] %(name)s: %(message)s',
        stream=sys.stdout
    )

    print("=" * 60)
    print("🚀 GYRO VIEWER STARTING...")
    print("=" * 60)
    print(f"📡 Endpoint: {config.connection.endpoint_url}")
    print(f"🎞️  Frame rate: {config.frame_rate} fps")

    app = QtWidgets.QApplication(sys.argv[:1])

    # Background workers
    commands = RemoteCommandWorker(timeout=config.request_timeout)
    loader = ModelLoader(timeout=config.request_timeout)
    commands.status_update.connect(lambda msg: print(f"[Commands] {msg}"))
    loader.status_update.connect(lambda msg: print(f"[Models] {msg}"))
    commands.start()
    loader.start()

    window = MainWindow(config, commands, loader)
    window.start(connect=args.connect)
    window.show()

    print("\n" + "=" * 60)
    if args.connect:
        print("✅ VIEWER READY - Connecting to telemetry stream")
    else:
        print("✅ VIEWER READY - Use Setup > Setup connection to connect")
    print("=" * 60 + "\n")

    # Run Qt event loop
    result = app.exec_()

    # Clean shutdown
    print("\n🛑 Shutting down...")
    window.shutdown()
    for worker in (commands, loader):
        worker.stop()
        worker.wait()

    print("👋 Goodbye!")
    return result


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as e:
        print("\n" + "=" * 60)
        print("❌ FATAL ERROR:")
        print("=" * 60)
        print(f"Error type: {type(e).__name__}")
        print(f"Error message: {e}")
        import traceback
        print("\nFull traceback:")
        traceback.print_exc()
        print("=" * 60)
        sys.exit(1)

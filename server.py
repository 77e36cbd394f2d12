"""
HTTP entry point: builds the registry from settings and serves the Flask API.

Usage: python server.py [--host 127.0.0.1] [--port 5000]
Games are persisted under LLMGAMES_DATA_DIR and restored on startup.
"""
from __future__ import annotations

import argparse
import logging

from llmgames.config import SETTINGS
from llmgames.server import build_registry, create_app

logging.basicConfig(level=getattr(logging, SETTINGS.log_level, logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=5000)
    args = ap.parse_args()
    app = create_app(build_registry(SETTINGS))
    app.run(host=args.host, port=args.port, threaded=True)

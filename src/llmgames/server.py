"""
Minimal Flask API that exposes the session registry to a chat dispatcher.

Endpoints:
- POST /api/channels/<channel_id>/messages -> route one chat message; {handled, reply, persisted}
- GET  /api/channels/<channel_id>/game     -> active session document (404 if none)
- GET  /api/health                         -> liveness plus active channel count
"""
from __future__ import annotations

import logging

from flask import Flask, jsonify, request

from .config import SETTINGS, Settings
from .llm_client import OracleClient
from .registry import NOT_A_GAME_COMMAND, SessionRegistry
from .session import Player
from .storage import JsonFileStore

log = logging.getLogger("server")


def build_registry(settings: Settings = SETTINGS) -> SessionRegistry:
    registry = SessionRegistry(JsonFileStore(settings.data_dir), OracleClient(settings=settings), settings=settings)
    registry.restore()
    return registry


def create_app(registry: SessionRegistry) -> Flask:
    app = Flask(__name__)

    @app.route("/api/channels/<channel_id>/messages", methods=["POST"])
    def channel_message(channel_id: str):
        data = request.get_json(force=True, silent=True) or {}
        user_id = str(data.get("user_id") or "").strip()
        text = str(data.get("text") or "")
        if not user_id:
            return jsonify({"error": "user_id is required"}), 400
        opponent = None
        opp = data.get("opponent")
        if isinstance(opp, dict) and opp.get("id"):
            opponent = Player(str(opp["id"]), str(opp.get("display_name") or opp["id"]))
        reply = registry.handle_message(
            channel_id, user_id, str(data.get("display_name") or user_id), text, opponent=opponent
        )
        if reply is NOT_A_GAME_COMMAND:
            return jsonify({"handled": False, "reply": None, "persisted": True})
        return jsonify({"handled": True, "reply": reply.text, "persisted": reply.persisted, "game_over": reply.game_over})

    @app.route("/api/channels/<channel_id>/game", methods=["GET"])
    def channel_game(channel_id: str):
        session = registry.active_session(channel_id)
        if session is None:
            return jsonify({"error": "not_found"}), 404
        return jsonify(session.to_document())

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok", "active_games": len(registry.active_channels())})

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        return response

    return app

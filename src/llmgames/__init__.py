"""
llmgames: turn-based games adjudicated by an LLM oracle.

Components:
- renderer: fixed-width board text for chat clients
- reply_parser/prompting: fixed-label reply parsing and prompt templates
- adapters: per-game prompt building, reply parsing and canonical state (chess)
- session: one game's state machine and the move arbitration protocol
- registry: one active session per channel, routing, persistence and restore
- llm_client: OpenAI-compatible oracle transport
- server: Flask endpoint exposing the registry to a chat dispatcher
"""
# Package exports are intentionally minimal; import modules directly as needed.

"""
Play one game against the oracle from the terminal.

Every line you type goes through the same registry path a chat message would:
start phrases, moves, "surrender". The game is saved under --data-dir and
resumed on the next run for the same --channel.
"""
import argparse
import logging

from llmgames.config import SETTINGS
from llmgames.llm_client import OracleClient
from llmgames.registry import NOT_A_GAME_COMMAND, SessionRegistry
from llmgames.storage import JsonFileStore


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--model", default=None, help="Oracle model name (overrides LLMGAMES_MODEL)")
    ap.add_argument("--game", default="chess", help="Game type to start if no game is active")
    ap.add_argument("--channel", default="terminal", help="Channel id used to key the saved game")
    ap.add_argument("--name", default="You", help="Your display name")
    ap.add_argument("--data-dir", default=None, help="Directory for saved games (overrides LLMGAMES_DATA_DIR)")
    ap.add_argument("--log-level", default=None, help="Python logging level (e.g., INFO, DEBUG)")
    args = ap.parse_args()

    log_level = (args.log_level or SETTINGS.log_level).upper()
    logging.basicConfig(level=getattr(logging, log_level, logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    log = logging.getLogger("play_one")

    store = JsonFileStore(args.data_dir or SETTINGS.data_dir)
    registry = SessionRegistry(store, OracleClient(model=args.model), settings=SETTINGS)
    registry.restore()

    session = registry.active_session(args.channel)
    if session is None:
        reply = registry.handle_message(args.channel, "human", args.name, f"start {args.game}")
    else:
        log.info("Resuming saved game in channel %s", args.channel)
        reply = None
        print(session.render())
    if reply:
        print(reply.text)

    while registry.active_session(args.channel) is not None:
        try:
            line = input("\nYour move (or 'surrender'): ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nGame saved. Bye.")
            break
        if not line:
            continue
        reply = registry.route_command(args.channel, "human", line)
        if reply is NOT_A_GAME_COMMAND:
            print("That does not look like a move. Try e.g. e2e4 or Nf3.")
            continue
        print(reply.text)
        if not reply.persisted:
            print("(warning: this result could not be saved)")

import unittest

from llmgames.adapters import ChessAdapter, create_adapter, known_game_types
from llmgames.adapters.base import RejectedAttempt
from llmgames.adapters.chess_adapter import check_resulting_fen, decode_fen, encode_fen
from llmgames.errors import UnknownGameTypeError
from llmgames.session import PLAYER1, GameSession, Player

from tests.fakes import AFTER_E4, AFTER_E5, AFTER_NF3, START_FEN, ScriptedOracle, generation_reply, validation_reply


def new_session() -> GameSession:
    return GameSession.new("c", ChessAdapter(glyphs="ascii"), Player("u1", "Alice"), Player("u2", "Bob"))


class FenTests(unittest.TestCase):
    def test_round_trip(self):
        for fen in (START_FEN, AFTER_E4, AFTER_E5, AFTER_NF3, "8/8/8/8/8/8/8/K6k w - - 50 80"):
            with self.subTest(fen=fen):
                self.assertEqual(encode_fen(decode_fen(fen)), fen)

    def test_decoded_fields(self):
        state = decode_fen(AFTER_E4)
        self.assertEqual(state.side_to_move, "black")
        self.assertEqual(state.en_passant, "e3")
        self.assertEqual(state.board[4][4], "P")
        self.assertEqual(state.board[6][4], " ")
        self.assertTrue(state.castling.black_queenside)

    def test_rejects_non_canonical(self):
        bad = [
            "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0",
            "rnbqkbnr/pppppppp/44/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",
            "rnbqkbnr/pppppppp/9/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",
            "rnbqkbnr/pppppppp/7/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",
            "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR x KQkq - 0 1",
            "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w QK - 0 1",
            "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq e4 0 1",
            "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 01 1",
            "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 0",
            "rnbqkbnr/ppppxppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",
        ]
        for fen in bad:
            with self.subTest(fen=fen):
                with self.assertRaises(ValueError):
                    decode_fen(fen)

    def test_impossible_position_is_rejected(self):
        with self.assertRaises(ValueError):
            check_resulting_fen("rnbq1bnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQ - 0 1")
        with self.assertRaises(ValueError):
            check_resulting_fen("Pnbqkbnr/pppppppp/8/8/8/8/1PPPPPPP/RNBQKBNR w KQkq - 0 1")


class RegistryOfAdaptersTests(unittest.TestCase):
    def test_aliases(self):
        self.assertIsInstance(create_adapter("Chess"), ChessAdapter)
        self.assertIsInstance(create_adapter("ajedrez"), ChessAdapter)
        self.assertIn("chess", known_game_types())

    def test_unknown(self):
        with self.assertRaises(UnknownGameTypeError) as ctx:
            create_adapter("tictactoe")
        self.assertEqual(ctx.exception.game_type, "tictactoe")


class ValidationParsingTests(unittest.TestCase):
    def setUp(self):
        self.session = new_session()
        self.adapter = self.session.adapter

    def test_well_formed_reply(self):
        v = self.adapter.parse_move_response(self.session, validation_reply("e2e4", AFTER_E4, check=True, check_square="e8"))
        self.assertTrue(v.valid)
        self.assertFalse(v.protocol_error)
        self.assertEqual(v.normalized_move, "e2e4")
        self.assertEqual(v.resulting_state, AFTER_E4)
        self.assertTrue(v.is_check)
        self.assertEqual(v.check_square, "e8")
        self.assertEqual(v.moved_piece, "pawn")

    def test_tolerates_markdown_and_trailing_text(self):
        reply = (
            "```\n"
            "**VALIDITY:** Yes\n"
            "- NORMALIZED_MOVE: [e2-e4]\n"
            "REASON: \"Standard opening\"\n"
            "CHECK: no\n"
            "CHECKMATE: no\n"
            "DRAW: no\n"
            "CHECK_SQUARE: none\n"
            f"RESULTING_STATE: {AFTER_E4} (after White's move)\n"
            "```"
        )
        v = self.adapter.parse_move_response(self.session, reply)
        self.assertTrue(v.valid)
        self.assertEqual(v.normalized_move, "e2e4")
        self.assertEqual(v.reason, "Standard opening")
        self.assertEqual(v.resulting_state, AFTER_E4)
        self.assertIsNone(v.check_square)

    def test_invalid_reply_keeps_reason(self):
        v = self.adapter.parse_move_response(self.session, validation_reply("e2e5", None, valid=False, reason="Too far"))
        self.assertFalse(v.valid)
        self.assertFalse(v.protocol_error)
        self.assertEqual(v.reason, "Too far")

    def test_missing_fields_make_protocol_error(self):
        cases = {
            "no state": validation_reply("e2e4", None),
            "no move": validation_reply("none", AFTER_E4),
            "bad fen": validation_reply("e2e4", "not a fen at all"),
        }
        for name, reply in cases.items():
            with self.subTest(name):
                v = self.adapter.parse_move_response(self.session, reply)
                self.assertFalse(v.valid)
                self.assertTrue(v.protocol_error)

    def test_annotated_booleans(self):
        reply = validation_reply("e2e4", AFTER_E4).replace("VALIDITY: true", "VALIDITY: true - legal pawn push")
        reply = reply.replace("CHECK: false", "CHECK: false (no piece attacks the king)")
        v = self.adapter.parse_move_response(self.session, reply)
        self.assertTrue(v.valid)
        self.assertFalse(v.protocol_error)
        self.assertFalse(v.is_check)

    def test_fen_followed_by_full_stop(self):
        v = self.adapter.parse_move_response(self.session, validation_reply("e2e4", AFTER_E4 + "."))
        self.assertTrue(v.valid)
        self.assertEqual(v.resulting_state, AFTER_E4)

    def test_annotated_checkmate_ends_the_game(self):
        mated = "r1bqkb1r/pppp1Qpp/2n2n2/4p3/2B1P3/8/PPPP1PPP/RNB1K1NR b KQkq - 0 4"
        reply = validation_reply("h5f7", mated, piece="queen", capture=True)
        reply = reply.replace("CHECKMATE: false", "CHECKMATE: true (black has no legal moves)")
        outcome = self.session.process_move("u1", "Qxf7", ScriptedOracle(reply))
        self.assertTrue(outcome.game_over)
        self.assertEqual(self.session.winner, PLAYER1)

    def test_unlabelled_reply_is_protocol_error(self):
        v = self.adapter.parse_move_response(self.session, "Sure, that looks fine!")
        self.assertFalse(v.valid)
        self.assertTrue(v.protocol_error)

    def test_checkmate_wins_over_draw(self):
        with self.assertLogs("chess_adapter", level="WARNING"):
            v = self.adapter.parse_move_response(self.session, validation_reply("e2e4", AFTER_E4, checkmate=True, draw=True))
        self.assertTrue(v.is_checkmate)
        self.assertFalse(v.is_draw)


class PromptTests(unittest.TestCase):
    def test_generate_prompt_lists_rejected_attempts(self):
        session = new_session()
        prompt = session.adapter.build_generate_prompt(session, [
            RejectedAttempt("e2e5", "Pawn cannot move three squares"),
            RejectedAttempt("(none)", "malformed reply"),
        ])
        self.assertIn(START_FEN, prompt)
        self.assertIn('- Attempt 1: "e2e5" - Reason: Pawn cannot move three squares', prompt)
        self.assertIn('- Attempt 2: "(none)" - Reason: malformed reply', prompt)

    def test_generate_prompt_without_rejections(self):
        session = new_session()
        prompt = session.adapter.build_generate_prompt(session, [])
        self.assertNotIn("Attempt 1", prompt)
        self.assertIn("MOVE:", prompt)


class GeneratedParsingTests(unittest.TestCase):
    def setUp(self):
        self.session = new_session()
        self.adapter = self.session.adapter

    def test_labelled_reply(self):
        c = self.adapter.parse_generated_response(self.session, generation_reply("e2e4", fen=AFTER_E4))
        self.assertTrue(c.well_formed)
        self.assertEqual(c.move_text, "e2e4")
        self.assertEqual(c.explanation, "Contest the centre.")
        self.assertEqual(c.resulting_state, AFTER_E4)
        self.assertIs(c.is_checkmate, False)

    def test_bare_move(self):
        c = self.adapter.parse_generated_response(self.session, "g1f3\nDevelops the knight.")
        self.assertEqual(c.move_text, "g1f3")

    def test_bare_move_followed_by_labels(self):
        self.session.current_turn = "player2"
        c = self.adapter.parse_generated_response(self.session, "e7e5\nEXPLANATION: Mirror the centre.")
        self.assertEqual(c.move_text, "e7e5")
        self.assertEqual(c.explanation, "Mirror the centre.")

    def test_castling_for_black(self):
        self.session.current_turn = "player2"
        c = self.adapter.parse_generated_response(self.session, "MOVE: O-O\nEXPLANATION: safety first")
        self.assertEqual(c.move_text, "e8g8")

    def test_no_move(self):
        c = self.adapter.parse_generated_response(self.session, "MOVE: none\nEXPLANATION: I am not sure")
        self.assertFalse(c.well_formed)


class ApplyAndRenderTests(unittest.TestCase):
    def test_side_to_move_is_forced(self):
        session = new_session()
        wrong_side = AFTER_E4.replace(" b ", " w ")
        verdict = session.adapter.parse_move_response(session, validation_reply("e2e4", wrong_side))
        with self.assertLogs("chess_adapter", level="WARNING"):
            session.adapter.apply_move(session, verdict)
        self.assertEqual(session.adapter.state.side_to_move, "black")
        self.assertEqual(session.adapter.fen(), AFTER_E4)

    def test_check_square_cleared_without_check(self):
        session = new_session()
        verdict = session.adapter.parse_move_response(session, validation_reply("e2e4", AFTER_E4, check_square="e8"))
        session.adapter.apply_move(session, verdict)
        self.assertIsNone(session.adapter.state.check_square)
        self.assertEqual(session.adapter.state.last_move, "e2e4")

    def test_dump_and_load_state(self):
        adapter = ChessAdapter(perspective="black")
        adapter.load_state({"fen": AFTER_E4, "last_move": "e2e4", "check_square": None})
        dumped = adapter.dump_state()
        other = ChessAdapter()
        other.load_state(dumped)
        self.assertEqual(other.fen(), AFTER_E4)
        self.assertEqual(other.state.last_move, "e2e4")

    def test_render_highlights_last_move(self):
        session = new_session()
        verdict = session.adapter.parse_move_response(session, validation_reply("e2e4", AFTER_E4))
        session.adapter.apply_move(session, verdict)
        text = session.adapter.render(session)
        self.assertIn("│[P]│", text)
        self.assertIn("2 │ P │ P │ P │ P │[ ]│ P │ P │ P │ 2", text)
        self.assertIn("Turn of Alice (White)", text)

    def test_looks_like_move(self):
        adapter = ChessAdapter()
        for text in ("e2e4", "e2-e4", "e2 to e4", "Nf3", "exd5", "O-O", "0-0-0", "e7e8=Q"):
            with self.subTest(text=text):
                self.assertTrue(adapter.looks_like_move(text))
        for text in ("hello there", "good game", "what time is it"):
            with self.subTest(text=text):
                self.assertFalse(adapter.looks_like_move(text))

    def test_announce(self):
        session = new_session()
        verdict = session.adapter.parse_move_response(session, validation_reply("e2e4", AFTER_E4, capture=True))
        self.assertEqual(session.adapter.announce(verdict), "I captured: e2e4")
        verdict.is_checkmate = True
        self.assertEqual(session.adapter.announce(verdict), "Checkmate! My final move is: e2e4")


if __name__ == "__main__":
    unittest.main()

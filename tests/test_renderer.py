import unittest

from llmgames.adapters.chess_adapter import START_FEN, decode_fen
from llmgames.renderer import ASCII_GLYPHS, UNICODE_GLYPHS, glyph_table, render_board


class RenderBoardTests(unittest.TestCase):
    def setUp(self):
        self.grid = decode_fen(START_FEN).board

    def test_start_position_white(self):
        lines = render_board(self.grid, glyphs=ASCII_GLYPHS, fence=False).splitlines()
        self.assertEqual(lines[0], "    a   b   c   d   e   f   g   h")
        self.assertEqual(lines[1], "  ┌───┬───┬───┬───┬───┬───┬───┬───┐")
        self.assertEqual(lines[2], "8 │ r │ n │ b │ q │ k │ b │ n │ r │ 8")
        self.assertEqual(lines[3], "  ├───┼───┼───┼───┼───┼───┼───┼───┤")
        self.assertEqual(lines[-3], "1 │ R │ N │ B │ Q │ K │ B │ N │ R │ 1")
        self.assertEqual(lines[-2], "  └───┴───┴───┴───┴───┴───┴───┴───┘")
        self.assertEqual(lines[-1], lines[0])
        self.assertEqual(len(lines), 2 + 8 + 7 + 2)

    def test_black_orientation_flips_ranks_and_files(self):
        lines = render_board(self.grid, orientation="black", glyphs=ASCII_GLYPHS, fence=False).splitlines()
        self.assertEqual(lines[0], "    h   g   f   e   d   c   b   a")
        self.assertEqual(lines[2], "1 │ R │ N │ B │ K │ Q │ B │ N │ R │ 1")
        self.assertEqual(lines[-3], "8 │ r │ n │ b │ k │ q │ b │ n │ r │ 8")

    def test_highlights_are_bracketed(self):
        text = render_board(self.grid, highlights=["E2", "e4"], glyphs=ASCII_GLYPHS, fence=False)
        self.assertIn("2 │ P │ P │ P │ P │[P]│ P │ P │ P │ 2", text)
        self.assertIn("4 │   │   │   │   │[ ]│   │   │   │ 4", text)

    def test_unicode_glyphs(self):
        text = render_board(self.grid, glyphs=UNICODE_GLYPHS, fence=False)
        self.assertIn("│ ♜ │", text)
        self.assertIn("│ ♙ │", text)

    def test_fence(self):
        text = render_board(self.grid)
        self.assertTrue(text.startswith("```\n"))
        self.assertTrue(text.endswith("\n```"))

    def test_small_grid(self):
        grid = [["X", "O", " "], [" ", "X", " "], ["O", " ", "X"]]
        lines = render_board(grid, glyphs={}, fence=False).splitlines()
        self.assertEqual(lines[0], "    a   b   c")
        self.assertEqual(lines[2], "3 │ X │ O │   │ 3")
        self.assertEqual(lines[-3], "1 │ O │   │ X │ 1")

    def test_ragged_grid_is_rejected(self):
        with self.assertRaises(ValueError):
            render_board([["a", "b"], ["c"]])

    def test_glyph_table_lookup(self):
        self.assertIs(glyph_table("ASCII"), ASCII_GLYPHS)
        self.assertIs(glyph_table("nonsense"), UNICODE_GLYPHS)


if __name__ == "__main__":
    unittest.main()

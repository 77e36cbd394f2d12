import os
import shutil
import tempfile
import unittest
from dataclasses import FrozenInstanceError
from unittest.mock import patch

from llmgames.config import load_settings


class LoadSettingsTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.path = os.path.join(self.tmp, "settings.yml")

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def write(self, text):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(text)

    def test_yaml_takes_precedence_over_environment(self):
        self.write("LLMGAMES_MODEL: yaml-model\nLLMGAMES_ORACLE_RETRIES: 5\n")
        env = {"LLMGAMES_MODEL": "env-model", "LLMGAMES_MAX_GENERATION_ATTEMPTS": "4"}
        with patch.dict(os.environ, env):
            s = load_settings(self.path)
        self.assertEqual(s.model, "yaml-model")
        self.assertEqual(s.oracle_retries, 5)
        self.assertEqual(s.max_generation_attempts, 4)

    def test_defaults(self):
        keys = [k for k in os.environ if k.startswith("LLMGAMES_")]
        with patch.dict(os.environ, {}, clear=False):
            for k in keys:
                del os.environ[k]
            s = load_settings(os.path.join(self.tmp, "missing.yml"))
        self.assertEqual(s.oracle_timeout_s, 60.0)
        self.assertEqual(s.oracle_retries, 2)
        self.assertEqual(s.max_generation_attempts, 3)
        self.assertEqual(s.board_glyphs, "unicode")
        self.assertEqual(s.log_level, "INFO")
        self.assertTrue(s.data_dir.endswith(os.path.join("data", "games")))

    def test_values_are_normalised(self):
        self.write("LLMGAMES_BOARD_GLYPHS: ASCII\nLLMGAMES_LOG_LEVEL: debug\nLLMGAMES_ORACLE_TIMEOUT_S: '12'\n")
        s = load_settings(self.path)
        self.assertEqual(s.board_glyphs, "ascii")
        self.assertEqual(s.log_level, "DEBUG")
        self.assertEqual(s.oracle_timeout_s, 12.0)

    def test_settings_are_frozen(self):
        s = load_settings(self.path)
        with self.assertRaises(FrozenInstanceError):
            s.model = "x"


if __name__ == "__main__":
    unittest.main()

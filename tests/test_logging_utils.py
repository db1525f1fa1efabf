import logging
import tempfile
import unittest
from pathlib import Path

from ui.logging_utils import setup_logging


class TestSetupLogging(unittest.TestCase):
    def setUp(self) -> None:
        self.root = logging.getLogger()
        self.saved_handlers = self.root.handlers[:]
        self.saved_level = self.root.level
        self.root.handlers = []

    def tearDown(self) -> None:
        for handler in self.root.handlers:
            handler.close()
        self.root.handlers = self.saved_handlers
        self.root.setLevel(self.saved_level)

    def test_console_and_file_handlers(self):
        with tempfile.TemporaryDirectory() as tmp:
            log_file = Path(tmp) / "logs" / "nova.log"
            setup_logging(level="debug", log_file=str(log_file))

            self.assertEqual(self.root.level, logging.DEBUG)
            self.assertEqual(len(self.root.handlers), 2)
            self.assertTrue(log_file.parent.exists())
            for handler in self.root.handlers:
                handler.close()

    def test_empty_file_name_logs_to_console_only(self):
        setup_logging(level="WARNING", log_file="")

        self.assertEqual(len(self.root.handlers), 1)
        self.assertEqual(logging.getLogger("urllib3").level, logging.WARNING)

    def test_is_idempotent(self):
        setup_logging(log_file="")
        setup_logging(log_file="")

        self.assertEqual(len(self.root.handlers), 1)


if __name__ == "__main__":
    unittest.main()

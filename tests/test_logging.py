import logging
import logging.handlers
import os
import queue
import tempfile
import unittest

from juliaset.util.logging_setup import configure_logging, configure_worker_logging, get_logger


class TestLoggingSetup(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.addCleanup(self._reset)

    def _reset(self):
        logger = get_logger()
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()

    def test_console_only_by_default(self):
        logger = configure_logging(level=logging.WARNING)
        self.assertEqual([type(h) for h in logger.handlers], [logging.StreamHandler])
        self.assertEqual(logger.level, logging.WARNING)
        self.assertFalse(logger.propagate)

    def test_log_file_adds_rotating_handler(self):
        path = os.path.join(self.tmp.name, "julia.log")
        logger = configure_logging(level=logging.INFO, log_file=path)
        self.assertTrue(any(isinstance(h, logging.handlers.RotatingFileHandler) for h in logger.handlers))
        logger.info("rows done: %d", 3)
        for h in logger.handlers:
            h.flush()
        with open(path, encoding="utf-8") as f:
            self.assertIn("rows done: 3", f.read())

    def test_reconfiguring_replaces_handlers(self):
        configure_logging(level=logging.INFO)
        logger = configure_logging(level=logging.INFO)
        self.assertEqual(len(logger.handlers), 1)

    def test_worker_records_go_to_queue(self):
        q = queue.Queue()
        configure_worker_logging(q, level=logging.DEBUG)
        get_logger().debug("row %d rendered", 50)
        record = q.get_nowait()
        self.assertEqual(record.getMessage(), "row 50 rendered")

    def test_worker_without_queue_is_left_alone(self):
        logger = configure_logging(level=logging.INFO)
        handlers = list(logger.handlers)
        configure_worker_logging(None, level=logging.DEBUG)
        self.assertEqual(get_logger().handlers, handlers)


if __name__ == "__main__":
    unittest.main()

import logging
import os
import tempfile
import unittest

from logging_config import LOGGER_NAMESPACE, setup_logging


class TestSetupLogging(unittest.TestCase):
    def tearDown(self):
        logger = logging.getLogger(LOGGER_NAMESPACE)
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)

    def test_handlers_are_not_duplicated(self):
        setup_logging()
        logger = setup_logging()
        self.assertEqual(logger.name, LOGGER_NAMESPACE)
        self.assertEqual(len(logging.getLogger(LOGGER_NAMESPACE).handlers), 1)

    def test_log_file_receives_module_records(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "run.log")
            setup_logging(logging.DEBUG, log_file=path)
            logging.getLogger(LOGGER_NAMESPACE + ".simulation").debug("cap reached")
            for handler in logging.getLogger(LOGGER_NAMESPACE).handlers:
                handler.flush()
            with open(path, encoding="utf-8") as fh:
                text = fh.read()
            self.tearDown()
        self.assertIn("Logging to " + path, text)
        self.assertIn("quantum_tunneling.simulation - DEBUG - cap reached", text)


if __name__ == "__main__":
    unittest.main()

########################################################################################
##
##                                  TESTS FOR
##                              'utils/logger.py'
##
########################################################################################

# IMPORTS ==============================================================================

import logging
import os
import tempfile
import unittest

from bootfit.utils.logger import LoggerManager, ROOT_LOGGER_NAME


# TESTS ================================================================================

class TestLoggerManager(unittest.TestCase):
    """
    Test the 'LoggerManager' singleton of the 'bootfit' logger hierarchy
    """

    def tearDown(self):
        LoggerManager().configure(enabled=False, level=logging.INFO)


    def test_singleton(self):
        self.assertIs(LoggerManager(), LoggerManager())


    def test_child_loggers(self):
        log = LoggerManager().get_logger("opt.bootstrap")
        self.assertEqual(log.name, "bootfit.opt.bootstrap")
        self.assertIs(log, LoggerManager().get_logger("opt.bootstrap"))


    def test_silent_by_default(self):
        root = logging.getLogger(ROOT_LOGGER_NAME)
        self.assertTrue(any(isinstance(h, logging.NullHandler) for h in root.handlers))
        self.assertFalse(LoggerManager().is_enabled())


    def test_configure_file_output(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "bootfit.log")

            mgr = LoggerManager()
            mgr.configure(output=path, level=logging.DEBUG, format="%(levelname)s %(message)s")
            self.assertTrue(mgr.is_enabled())

            mgr.get_logger("test").debug("resampling round %d", 3)
            mgr.configure(enabled=False)

            with open(path, encoding="utf-8") as fh:
                self.assertIn("DEBUG resampling round 3", fh.read())


    def test_disable_removes_handler(self):
        mgr = LoggerManager()
        mgr.configure()
        n_handlers = len(mgr.root_logger.handlers)
        mgr.configure(enabled=False)
        self.assertEqual(len(mgr.root_logger.handlers), n_handlers - 1)
        self.assertIsNone(mgr.handler)


    def test_set_level(self):
        mgr = LoggerManager()
        mgr.set_level(logging.WARNING)
        self.assertEqual(mgr.root_logger.level, logging.WARNING)


if __name__ == '__main__':
    unittest.main(verbosity=2)

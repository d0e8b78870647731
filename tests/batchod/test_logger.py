########################################################################################
##
##                                  TESTS FOR
##                              'utils/logger.py'
##
########################################################################################

# IMPORTS ==============================================================================

import io
import logging
import unittest

from batchod.utils.logger import LoggerManager


# TESTS ================================================================================

class TestLoggerManager(unittest.TestCase):
    """
    Test the package logger singleton
    """

    def setUp(self):
        self.stream = io.StringIO()
        self.manager = LoggerManager()
        self.manager.configure(output=self.stream, format="%(name)s|%(message)s")


    def tearDown(self):
        self.manager.configure()


    def test_singleton(self):
        self.assertIs(LoggerManager(), LoggerManager())


    def test_child_logger_name(self):
        logger = self.manager.get_logger("estimation")
        self.assertEqual(logger.name, "batchod.estimation")


    def test_output_goes_to_configured_stream(self):
        self.manager.get_logger("assembler").info("hello %d", 3)
        self.assertIn("batchod.assembler|hello 3", self.stream.getvalue())


    def test_single_handler_after_reconfiguration(self):
        self.manager.configure(output=self.stream)
        self.manager.configure(output=self.stream)
        self.assertEqual(len(self.manager.root_logger.handlers), 1)


    def test_disable_and_enable(self):
        logger = self.manager.get_logger("estimation")

        self.manager.disable()
        logger.warning("dropped")
        self.assertEqual(self.stream.getvalue(), "")

        self.manager.enable()
        logger.warning("kept")
        self.assertIn("kept", self.stream.getvalue())


    def test_configure_disabled(self):
        self.manager.configure(enabled=False, output=self.stream)
        self.manager.get_logger("estimation").error("dropped")
        self.assertEqual(self.stream.getvalue(), "")


    def test_set_level(self):
        logger = self.manager.get_logger("dynamics")

        self.manager.set_level(logging.WARNING)
        logger.info("hidden")
        self.assertEqual(self.stream.getvalue(), "")

        self.manager.set_level(logging.DEBUG, module="dynamics")
        logger.debug("shown")
        self.assertIn("shown", self.stream.getvalue())

        self.manager.set_level(logging.NOTSET, module="dynamics")
        self.manager.set_level(logging.INFO)


if __name__ == "__main__":
    unittest.main(verbosity=2)

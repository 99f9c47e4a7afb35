import logging
import os
import random

from shiftreduce.common import Tqdm
from shiftreduce.common.logging import ShiftReduceLogger, prepare_global_logging
from shiftreduce.common.testing import ShiftReduceTestCase


class TestLogging(ShiftReduceTestCase):
    def setup_method(self):
        super().setup_method()
        logger = logging.getLogger(str(random.random()))
        self.test_log_file = os.path.join(self.TEST_DIR, "test.log")
        logger.addHandler(logging.FileHandler(self.test_log_file))
        logger.setLevel(logging.DEBUG)
        self.logger = logger
        self._msg = "test message"

    def teardown_method(self):
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)
        for logger in (logging.getLogger(), logging.getLogger("tqdm")):
            for handler in list(logger.handlers):
                if isinstance(handler, logging.FileHandler):
                    handler.close()
                    logger.removeHandler(handler)
        super().teardown_method()

    def test_debug_once(self):
        self.logger.debug_once(self._msg)
        self.logger.debug_once(self._msg)

        with open(self.test_log_file, "r") as f:
            assert len(f.readlines()) == 1

    def test_info_once(self):
        self.logger.info_once(self._msg)
        self.logger.info_once(self._msg)

        with open(self.test_log_file, "r") as f:
            assert len(f.readlines()) == 1

    def test_warning_once(self):
        self.logger.warning_once(self._msg)
        self.logger.warning_once(self._msg)

        with open(self.test_log_file, "r") as f:
            assert len(f.readlines()) == 1

    def test_debug_once_different_args(self):
        self.logger.debug_once("There are %d lights.", 4)
        self.logger.debug_once("There are %d lights.", 5)

        with open(self.test_log_file, "r") as f:
            assert len(f.readlines()) == 1

        assert len(self.logger._seen_msgs) == 1

    def test_getLogger(self):
        logger = logging.getLogger("test_logger")

        assert isinstance(logger, ShiftReduceLogger)
        assert isinstance(logging.getLogger("shiftreduce.objectives.margin_max"), ShiftReduceLogger)

    def test_reset_tqdm_logger_handlers(self):
        serialization_dir_a = os.path.join(self.TEST_DIR, "test_a")
        os.makedirs(serialization_dir_a, exist_ok=True)
        prepare_global_logging(serialization_dir_a)
        serialization_dir_b = os.path.join(self.TEST_DIR, "test_b")
        os.makedirs(serialization_dir_b, exist_ok=True)
        prepare_global_logging(serialization_dir_b)
        # Use range(1) to make sure there should be only 2 lines in the file (0% and 100%)
        for _ in Tqdm.tqdm(range(1)):
            pass
        with open(os.path.join(serialization_dir_a, "out.log"), "r") as f:
            assert len(f.readlines()) == 0
        with open(os.path.join(serialization_dir_b, "out.log"), "r") as f:
            assert len(f.readlines()) == 2

    def test_worker_log_files(self):
        prepare_global_logging(self.TEST_DIR, rank=1)
        logging.getLogger("shiftreduce.training").info("worker message")
        with open(os.path.join(self.TEST_DIR, "out_worker1.log"), "r") as f:
            assert f.read().startswith("1 | ")

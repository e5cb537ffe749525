import pytest
import logging
import os
from pathlib import Path
from tunelab.logging_config import LoggingConfigurator, ColoredFormatter

def test_logger_creation(tmp_path):
    # Change CWD to tmp_path to avoid creating logs in project root
    old_cwd = os.getcwd()
    os.chdir(tmp_path)
    try:
        config = {'logging': {'level': 'DEBUG', 'log_to_file': True}}
        lc = LoggingConfigurator(config)
        lc.setup()

        logger = lc.get_logger('test_mod')
        logger.info("Test message")

        assert Path("logs/tunelab.log").exists()
        with open("logs/tunelab.log", 'r') as f:
            assert "Test message" in f.read()
    finally:
        logging.shutdown()
        logging.getLogger().handlers = []
        os.chdir(old_cwd)

def test_custom_log_dir(tmp_path):
    log_dir = tmp_path / "custom_logs"
    config = {'logging': {'level': 'INFO', 'log_to_console': False, 'log_dir': str(log_dir)}}
    try:
        LoggingConfigurator(config).setup()
        logging.getLogger('x').warning("written")
        assert (log_dir / "tunelab.log").exists()
        assert logging.getLogger().level == logging.INFO
    finally:
        logging.shutdown()
        logging.getLogger().handlers = []

def test_colored_formatter_leaves_record_untouched():
    formatter = ColoredFormatter('%(levelname)s %(message)s')
    record = logging.LogRecord('n', logging.WARNING, __file__, 1, "careful", None, None)

    output = formatter.format(record)

    assert "careful" in output
    assert record.levelname == "WARNING"

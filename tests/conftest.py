"""
Shared fixtures.
"""

import logging
import textwrap

import pytest

from dropship.utils.logging import ROOT_LOGGER_NAME

BASE_CONFIG = """
general:
  interval_s: 30

sftp:
  host: sftp.example.com
  port: 22
  username: dropship
  password: secret
  remote_directory: /incoming

files:
  staging_dir: outgoing
  archive_dir: archive
  retention_days: 14

retry:
  max_retries: 2
  initial_delay_s: 1

message:
  fields:
    - field: Barcode
      position: 0
      fixed_length: 12
    - field: Weight_Ratio
      position: 1
      fixed_length: 10
      decimal_places: 2

source:
  type: memory
  sample_records: 2

logging:
  level: INFO
  file: logs/dropship.log
  console_type: plain
"""


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo handler changes made by setup_logging."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def write_config(tmp_path):
    """Write config.yaml (and overlays) into tmp_path; returns the directory."""

    def _write(content=BASE_CONFIG, name="config.yaml"):
        (tmp_path / name).write_text(textwrap.dedent(content))
        return tmp_path

    return _write


@pytest.fixture
def project_dir(write_config):
    return write_config()

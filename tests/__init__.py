"""Test module for serdes-tools
"""

import pathlib

TEST_LOG = pathlib.Path(".test_log.json")

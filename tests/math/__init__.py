"""Tests for serdes_tools.math
"""

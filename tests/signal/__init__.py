"""Tests for serdes_tools.signal
"""

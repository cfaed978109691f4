"""Tests for serdes_tools.measurement
"""

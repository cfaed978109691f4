"""Tests for serdes_tools.measurement.pam4
"""

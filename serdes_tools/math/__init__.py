"""Numerical helpers
"""

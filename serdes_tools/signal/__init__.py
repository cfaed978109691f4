"""Capture traces and their resampling onto clock grids
"""

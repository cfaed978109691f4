"""Link measurements
"""

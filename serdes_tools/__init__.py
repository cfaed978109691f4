"""serdes-tools

A library for calibrating simulated PAM4 serial links
"""

__all__ = ["strformat", "exceptions", "math", "signal", "measurement"]

from serdes_tools.version import __version__

from serdes_tools import strformat

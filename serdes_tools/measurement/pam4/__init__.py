"""PAM4 decisions and threshold calibration
"""

from serdes_tools.measurement.pam4.decision import (SYMBOLS, ThresholdConfig,
                                                    decide, decide_np)
from serdes_tools.measurement.pam4.calibration import (Calibration, Config,
                                                       SweepResult, sweep)
from serdes_tools.measurement.pam4.report import Decisions, Report

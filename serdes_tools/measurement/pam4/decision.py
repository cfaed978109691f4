"""PAM4 symbol decision with static and dynamic threshold adjustment

Nominal boundaries sit at +vt_high, 0, -vt_high where
vt_high = 2/3 * maximum RX voltage. Regions from the top:
  11: voltage >= high
  10: mid <= voltage < high
  01: low <= voltage < mid
  00: voltage < low

static_adjust pulls high down and low up. dynamic_adjust pulls the outer
boundary on the previous symbol's rail further in: after 00 or 01 (seen from
below) the low boundary, after 10 or 11 (seen from above) the high boundary.
"""

from __future__ import annotations

from typing import Dict, Tuple

import numpy as np

from serdes_tools.exceptions import InvalidConfigurationError

SYMBOLS = ("00", "01", "10", "11")
SYMBOL_00 = 0
SYMBOL_01 = 1
SYMBOL_10 = 2
SYMBOL_11 = 3

V_MID = 0.0


def vt_high(v_max_rx: float) -> float:
  """Nominal high boundary for a receive swing

  Args:
    v_max_rx: Maximum receive voltage

  Returns:
    2/3 of v_max_rx, halfway between the two upper PAM4 levels
  """
  return v_max_rx * 2 / 3


class ThresholdConfig:
  """Candidate threshold adjustment

  Properties:
    static_adjust: Symmetric inward shift of the high and low boundaries
    dynamic_adjust: Additional inward shift of the boundary on the previous
      symbol's rail
  """

  def __init__(self,
               static_adjust: float = 0.0,
               dynamic_adjust: float = 0.0) -> None:
    self.static_adjust = float(static_adjust)
    self.dynamic_adjust = float(dynamic_adjust)

  def validate(self, v_high: float) -> None:
    """Check the adjusted boundaries keep high > mid > low

    Args:
      v_high: Nominal high boundary

    Raises:
      InvalidConfigurationError if an adjustment is negative or the total
      adjustment reaches the mid boundary
    """
    validate(v_high, self.static_adjust, self.dynamic_adjust)

  def boundaries(self, v_high: float) -> Dict[str, Tuple[float, float, float]]:
    """Compute all six adjusted boundaries

    Args:
      v_high: Nominal high boundary

    Returns:
      {"from_below": (high, mid, low), "from_above": (high, mid, low)}
      from_below applies after 00 or 01, from_above after 10 or 11
    """
    self.validate(v_high)
    return {
        "from_below":
            boundaries(v_high, self.static_adjust, self.dynamic_adjust,
                       SYMBOL_00),
        "from_above":
            boundaries(v_high, self.static_adjust, self.dynamic_adjust,
                       SYMBOL_11)
    }

  def to_dict(self) -> dict:
    return {
        "static_adjust": self.static_adjust,
        "dynamic_adjust": self.dynamic_adjust
    }

  def __eq__(self, other: object) -> bool:
    if not isinstance(other, ThresholdConfig):
      return NotImplemented
    return (self.static_adjust == other.static_adjust and
            self.dynamic_adjust == other.dynamic_adjust)

  def __repr__(self) -> str:
    return (f"ThresholdConfig(static_adjust={self.static_adjust}, "
            f"dynamic_adjust={self.dynamic_adjust})")


def validate(v_high: float, static_adjust: float,
             dynamic_adjust: float) -> None:
  """Check adjustments keep the boundaries ordered, see ThresholdConfig

  Raises:
    InvalidConfigurationError on a non-positive v_high, negative adjustment,
    or adjustments that would reach the mid boundary
  """
  if v_high <= 0:
    raise InvalidConfigurationError(f"vt_high must be positive: {v_high}")
  if static_adjust < 0 or dynamic_adjust < 0:
    raise InvalidConfigurationError(
        "Adjustments only move boundaries inward, got "
        f"static={static_adjust}, dynamic={dynamic_adjust}")
  if static_adjust + dynamic_adjust >= v_high:
    raise InvalidConfigurationError(
        f"static={static_adjust} + dynamic={dynamic_adjust} would move the "
        f"outer boundaries past mid, must be < {v_high}")


def boundaries(v_high: float, static_adjust: float, dynamic_adjust: float,
               previous_symbol: int) -> Tuple[float, float, float]:
  """Adjusted boundaries for one previous symbol

  Args:
    v_high: Nominal high boundary
    static_adjust: See ThresholdConfig
    dynamic_adjust: See ThresholdConfig
    previous_symbol: Previously chosen symbol [0, 3]

  Returns:
    (high, mid, low)
  """
  high = v_high - static_adjust
  low = -v_high + static_adjust
  if previous_symbol >= SYMBOL_10:
    high = high - dynamic_adjust
  else:
    low = low + dynamic_adjust
  return high, V_MID, low


def decide(voltage: float, static_adjust: float, dynamic_adjust: float,
           previous_symbol: int, v_high: float) -> Tuple[int, float, float]:
  """Decide the PAM4 symbol of a voltage and its margin

  Inner regions (10, 01) report the nearer of their two boundaries, ties go
  to mid. Outer regions report their single boundary.

  Args:
    voltage: Sampled voltage
    static_adjust: See ThresholdConfig
    dynamic_adjust: See ThresholdConfig
    previous_symbol: Previously chosen symbol [0, 3]
    v_high: Nominal high boundary

  Returns:
    symbol [0, 3], boundary the margin was measured to, margin >= 0

  Raises:
    InvalidConfigurationError see validate
    ValueError if previous_symbol is not a PAM4 symbol
  """
  validate(v_high, static_adjust, dynamic_adjust)
  if previous_symbol not in (SYMBOL_00, SYMBOL_01, SYMBOL_10, SYMBOL_11):
    raise ValueError(f"Not a PAM4 symbol: {previous_symbol}")
  high, mid, low = boundaries(v_high, static_adjust, dynamic_adjust,
                              previous_symbol)

  if voltage >= high:
    return SYMBOL_11, high, voltage - high
  if voltage >= mid:
    upper = high - voltage
    lower = voltage - mid
    if upper < lower:
      return SYMBOL_10, high, upper
    return SYMBOL_10, mid, lower
  if voltage >= low:
    upper = mid - voltage
    lower = voltage - low
    if lower < upper:
      return SYMBOL_01, low, lower
    return SYMBOL_01, mid, upper
  return SYMBOL_00, low, low - voltage


def decide_np(
    voltage: float, static_adjust: np.ndarray, dynamic_adjust: np.ndarray,
    previous_symbol: np.ndarray,
    v_high: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
  """Decide one voltage under many adjustments at once, see decide

  Arrays are broadcast together. Results match decide exactly. Arguments are
  not validated, see validate.

  Args:
    voltage: Sampled voltage
    static_adjust: Array of static adjustments
    dynamic_adjust: Array of dynamic adjustments
    previous_symbol: Array of previously chosen symbols
    v_high: Nominal high boundary

  Returns:
    symbols, boundaries, margins
  """
  high = v_high - static_adjust
  low = -v_high + static_adjust
  above = previous_symbol >= SYMBOL_10
  high = np.where(above, high - dynamic_adjust, high)
  low = np.where(above, low, low + dynamic_adjust)
  mid = V_MID

  is_11 = voltage >= high
  is_10 = ~is_11 & (voltage >= mid)
  is_01 = ~is_11 & ~is_10 & (voltage >= low)

  symbols = np.select([is_11, is_10, is_01],
                      [SYMBOL_11, SYMBOL_10, SYMBOL_01],
                      default=SYMBOL_00).astype(np.int8)

  # 10
  upper = high - voltage
  lower = voltage - mid
  b_10 = np.where(upper < lower, high, mid)
  m_10 = np.where(upper < lower, upper, lower)

  # 01
  upper = mid - voltage
  lower = voltage - low
  b_01 = np.where(lower < upper, low, mid)
  m_01 = np.where(lower < upper, lower, upper)

  bounds = np.select([is_11, is_10, is_01], [high, b_10, b_01], default=low)
  margins = np.select([is_11, is_10, is_01],
                      [voltage - high, m_10, m_01],
                      default=low - voltage)
  return symbols, bounds, margins

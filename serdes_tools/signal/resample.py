"""Resample an irregular capture onto the TX and RX clock grids
"""

from __future__ import annotations

from typing import Iterable, Tuple

import numpy as np

from serdes_tools.exceptions import MalformedRecordError
from serdes_tools.math import interpolation
from serdes_tools.signal.trace import CaptureEntry


class _TickStream:
  """Pending ticks of one uniform clock
  """

  def __init__(self, period: float) -> None:
    self.period = period
    self.k = 0
    self.t = []
    self.y = []

  @property
  def tick(self) -> float:
    return self.k * self.period

  def fill(self, t0: float, y0: float, t1: float, y1: float) -> None:
    """Emit every pending tick at or before t1

    Args:
      t0: Time of the previous entry, strictly before the next tick
      y0: Value of the previous entry
      t1: Time of the current entry
      y1: Value of the current entry
    """
    while t1 >= self.tick:
      tick = self.tick
      self.t.append(tick)
      self.y.append(interpolation.linear(tick, t0, y0, t1, y1))
      self.k += 1

  def waveform(self) -> np.ndarray:
    return np.array([self.t, self.y], dtype=np.float64).reshape(2, -1)


def resample(entries: Iterable[CaptureEntry],
             tx_period: float,
             rx_period: float,
             tx_start: float = 0.0,
             rx_start: float = 0.0) -> Tuple[np.ndarray, np.ndarray]:
  """Resample TX and RX voltages at their clock periods in one pass

  The previous entry starts as a synthetic entry at -tx_period holding the
  startup voltages so the first real entry has an interpolation partner.
  A single entry can fill zero, one, or several ticks. Ticks after the last
  entry are not emitted.

  Args:
    entries: Capture entries ordered by non-decreasing time, consumed once
    tx_period: TX clock period, same units as entry time
    rx_period: RX sample period, same units as entry time
    tx_start: TX voltage of the synthetic startup entry
    rx_start: RX voltage of the synthetic startup entry

  Returns:
    tx waveform [[t0, t1,..., tn], [v0, v1,..., vn]]
    rx waveform [[t0, t1,..., tm], [v0, v1,..., vm]]

  Raises:
    ValueError if a period is not positive
    MalformedRecordError if entries go backwards in time
  """
  if tx_period <= 0 or rx_period <= 0:
    raise ValueError(
        f"Periods must be positive, tx={tx_period}, rx={rx_period}")

  tx = _TickStream(tx_period)
  rx = _TickStream(rx_period)

  prev = CaptureEntry(-1, -tx_period, tx_start, rx_start)
  for entry in entries:
    if entry.time < prev.time:
      raise MalformedRecordError(
          f"Entry {entry.index} at {entry.time} is before entry {prev.index} "
          f"at {prev.time}")
    tx.fill(prev.time, prev.tx, entry.time, entry.tx)
    rx.fill(prev.time, prev.rx, entry.time, entry.rx)
    prev = entry

  return tx.waveform(), rx.waveform()


def stride(tx_period: float, rx_period: float) -> int:
  """Number of RX samples per TX symbol

  Args:
    tx_period: TX clock period
    rx_period: RX sample period

  Returns:
    Integer ratio tx_period / rx_period

  Raises:
    ValueError if the RX grid is slower than the TX grid or the periods are
    not commensurate
  """
  ratio = tx_period / rx_period
  n = int(round(ratio))
  if n < 1 or not np.isclose(ratio, n, rtol=1e-9, atol=0):
    raise ValueError(
        f"RX period {rx_period} does not evenly divide TX period {tx_period}")
  return n


"""Capture trace reader for ASCII .raw simulation output

The trace holds two identical blocks, each starting with a "Values:" line.
The second block is read. Each entry spans 5 lines:
  <index> <time [s]>
  <unused>
  <unused>
  <TX voltage [V]>
  <RX voltage [V]>
"""

from __future__ import annotations

import math
import os
from typing import Iterable, Iterator, List, NamedTuple

from serdes_tools.exceptions import (MalformedRecordError, TruncatedTraceError,
                                     UnopenableSourceError)

SENTINEL = "Values:"
N_SENTINELS = 2
N_CONTINUATION = 4
TX_RECORD = 2
RX_RECORD = 3


class CaptureEntry(NamedTuple):
  """Single point of a capture

  Properties:
    index: Point index reported by the simulator
    time: Timestamp, ps
    tx: TX voltage, mV
    rx: RX voltage, mV
  """
  index: int
  time: float
  tx: float
  rx: float


class TraceReader:
  """Iterator of CaptureEntry parsed from the lines of a .raw trace

  Consumes lines lazily, raises on incomplete or unparsable records rather
  than ending early.
  """

  def __init__(self,
               lines: Iterable[str],
               tx_gain: float = 1e3,
               rx_gain: float = 1e3,
               time_scale: float = 1e12) -> None:
    """Initialize TraceReader

    Args:
      lines: Lines of the trace, such as an open text file
      tx_gain: Multiplier from TX record to TX voltage, default V to mV
      rx_gain: Multiplier from RX record to RX voltage, default V to mV
      time_scale: Multiplier from time record to timestamp, default s to ps
    """
    self._lines = iter(lines)
    self._line_no = 0
    self._tx_gain = tx_gain
    self._rx_gain = rx_gain
    self._time_scale = time_scale
    self._in_values = False

  def __iter__(self) -> Iterator[CaptureEntry]:
    return self

  def _next_line(self) -> str:
    line = next(self._lines)
    self._line_no += 1
    return line

  def _skip_header(self) -> None:
    """Advance past the second sentinel line

    Raises:
      TruncatedTraceError if the trace ends before the sentinel
    """
    n = 0
    while n < N_SENTINELS:
      try:
        line = self._next_line()
      except StopIteration:
        raise TruncatedTraceError(
            f"Trace ended after {n} of {N_SENTINELS} '{SENTINEL}' headers"
        ) from None
      if line.startswith(SENTINEL):
        n += 1
    self._in_values = True

  def _parse(self, line: str, kind: type, name: str):
    tokens = line.split()
    if len(tokens) < 1:
      raise MalformedRecordError(
          f"Line {self._line_no}: expected {name}, got nothing")
    try:
      value = kind(tokens[0])
    except ValueError:
      raise MalformedRecordError(
          f"Line {self._line_no}: expected {name}, got '{tokens[0]}'") from None
    if kind is float and not math.isfinite(value):
      raise MalformedRecordError(
          f"Line {self._line_no}: expected finite {name}, got '{tokens[0]}'")
    return value

  def __next__(self) -> CaptureEntry:
    """Parse the next entry

    Returns:
      Next CaptureEntry

    Raises:
      StopIteration at the end of the trace, only between entries
      TruncatedTraceError if the trace ends mid-entry or before the header
      MalformedRecordError if a record is not a finite number
    """
    if not self._in_values:
      self._skip_header()

    line = self._next_line()
    while not line.strip():
      line = self._next_line()

    tokens = line.split()
    if len(tokens) < 2:
      raise MalformedRecordError(
          f"Line {self._line_no}: expected index and time, got '{line.strip()}'"
      )
    index = self._parse(tokens[0], int, "index")
    time = self._parse(tokens[1], float, "time") * self._time_scale

    tx = None
    rx = None
    for i in range(N_CONTINUATION):
      try:
        line = self._next_line()
      except StopIteration:
        raise TruncatedTraceError(
            f"Truncated entry {index} at end of trace") from None
      if i == TX_RECORD:
        tx = self._parse(line, float, "TX voltage") * self._tx_gain
      elif i == RX_RECORD:
        rx = self._parse(line, float, "RX voltage") * self._rx_gain
    return CaptureEntry(index, time, tx, rx)


def read(path: os.PathLike, **kwargs) -> List[CaptureEntry]:
  """Read every entry of a .raw trace

  Args:
    path: Path to the trace
    All other kwargs passed to TraceReader

  Returns:
    List of CaptureEntry ordered as in the file

  Raises:
    UnopenableSourceError if the file cannot be opened or read
    TruncatedTraceError, MalformedRecordError, see TraceReader
  """
  try:
    with open(path, "r", encoding="utf-8", errors="replace") as file:
      return list(TraceReader(file, **kwargs))
  except OSError as e:
    raise UnopenableSourceError(f"Could not read trace {path}: {e}") from e

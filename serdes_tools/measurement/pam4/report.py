"""Report of a calibration: winning candidate and annotated RX decisions
"""

from __future__ import annotations

import json
import os
from typing import Any, Iterator

from matplotlib import pyplot
import numpy as np

from serdes_tools import strformat
from serdes_tools.measurement.pam4 import decision


class ReportJSONEncoder(json.JSONEncoder):
  """JSON Encoder for Report
  """

  def default(self, o: Any) -> Any:
    if isinstance(o, decision.ThresholdConfig):
      return o.to_dict()
    elif isinstance(o, np.integer):
      return int(o)
    elif isinstance(o, np.floating):
      return float(o)
    elif isinstance(o, np.bool_):
      return bool(o)
    elif isinstance(o, np.ndarray):
      return o.tolist()
    return super().default(o)


class Decisions:
  """Decision of every RX sample under one candidate

  Properties:
    time: Sample times, ps
    voltage: Sample voltages, mV
    symbol: Decided symbols [0, 3]
    boundary: Boundary each margin was measured to, mV
    margin: Distance to boundary, mV
    qualifies: True if the decision qualified
    selected: True if the sample is aligned with the TX clock (strided)
    startup: True if a selected sample was excluded from scoring
  """

  def __init__(self, time: np.ndarray, voltage: np.ndarray, symbol: np.ndarray,
               boundary: np.ndarray, margin: np.ndarray, qualifies: np.ndarray,
               selected: np.ndarray, startup: np.ndarray) -> None:
    self.time = time
    self.voltage = voltage
    self.symbol = symbol
    self.boundary = boundary
    self.margin = margin
    self.qualifies = qualifies
    self.selected = selected
    self.startup = startup

  def __len__(self) -> int:
    return len(self.time)

  @property
  def scored(self) -> np.ndarray:
    """Mask of samples counted in the qualifying fraction"""
    return self.selected & ~self.startup

  @property
  def fraction(self) -> float:
    """Fraction of scored samples that qualify, 0 if none are scored"""
    n_total = int(self.scored.sum())
    if n_total == 0:
      return 0.0
    return int((self.qualifies & self.scored).sum()) / n_total

  def rows(self) -> Iterator[dict]:
    """Iterate samples as dictionaries

    Yields:
      {time, voltage, symbol, boundary, margin, qualifies, selected, startup}
    """
    for i in range(len(self)):
      yield {
          "time": float(self.time[i]),
          "voltage": float(self.voltage[i]),
          "symbol": strformat.symbol_str(self.symbol[i]),
          "boundary": float(self.boundary[i]),
          "margin": float(self.margin[i]),
          "qualifies": bool(self.qualifies[i]),
          "selected": bool(self.selected[i]),
          "startup": bool(self.startup[i])
      }


class Report:
  """Calibration report collecting the sweep winner and its decisions

  Properties:
    result: SweepResult of the winning candidate
    decisions: Decisions of every RX sample under the winner
    v_high: Nominal high boundary, mV
    noise_margin: Qualifying margin, mV
    tx_waveform: TX waveform if provided
  """

  def __init__(self,
               result,
               decisions: Decisions,
               v_high: float,
               noise_margin: float,
               tx_waveform: np.ndarray = None) -> None:
    self.result = result
    self.decisions = decisions
    self.v_high = v_high
    self.noise_margin = noise_margin
    self.tx_waveform = tx_waveform

  @property
  def boundaries(self) -> dict:
    return self.result.config.boundaries(self.v_high)

  def to_dict(self, include_samples: bool = True) -> dict:
    """Convert Report to dictionary of values

    Args:
      include_samples: True will include the annotated sample list

    Returns:
      dictionary of the winner and optionally every sample
    """
    d = self.result.to_dict()
    d["v_high"] = self.v_high
    d["noise_margin"] = self.noise_margin
    d["boundaries"] = self.boundaries
    if include_samples:
      d["samples"] = list(self.decisions.rows())
    return d

  def save_json(self,
                filename: os.PathLike = "calibration.json",
                include_samples: bool = True,
                **kwargs) -> None:
    """Save report to JSON file

    Args:
      filename: File name for json file
      include_samples: True will include the annotated sample list
      Additional arguments passed to json.dump
    """
    with open(filename, "w", encoding="utf-8") as file:
      json.dump(self.to_dict(include_samples=include_samples),
                file,
                cls=ReportJSONEncoder,
                **kwargs)

  def pretty_print(self, samples: bool = False) -> None:
    """Print report beautifully

    Args:
      samples: True will also print every RX sample
    """
    r = self.result
    print(f"{'static_adjust':20}: {strformat.mv_str(r.config.static_adjust)}")
    print(f"{'dynamic_adjust':20}: {strformat.mv_str(r.config.dynamic_adjust)}")
    print(f"{'rx_offset':20}: {r.rx_offset:8}")
    print(f"{'qualifying_fraction':20}: {r.qualifying_fraction * 100:8.2f} %")
    if r.n_total is not None:
      print(f"{'qualifying':20}: {r.n_qualifying:8} of {r.n_total}")
    if r.n_candidates is not None:
      print(f"{'candidates':20}: {r.n_candidates:8}")
    for side, (high, mid, low) in self.boundaries.items():
      print(f"{side:20}: high={strformat.mv_str(high)} "
            f"mid={strformat.mv_str(mid)} low={strformat.mv_str(low)}")
    if not samples:
      return

    print(f"{'time':>11} {'voltage':>11} sym {'boundary':>11} "
          f"{'margin':>11}  flags")
    for row in self.decisions.rows():
      flags = ""
      if row["selected"]:
        flags += "S"
        if row["startup"]:
          flags += "-"
        elif row["qualifies"]:
          flags += "+"
        else:
          flags += "x"
      print(f"{strformat.ps_str(row['time'])} "
            f"{strformat.mv_str(row['voltage'])}  {row['symbol']} "
            f"{strformat.mv_str(row['boundary'])} "
            f"{strformat.mv_str(row['margin'])}  {flags}")

  def save_plot(self, filename: os.PathLike = "calibration.png") -> None:
    """Plot decided RX samples against the adjusted boundaries

    Args:
      filename: File name for image, format chosen by extension
    """

    def tick_formatter_t(t, _):
      return strformat.ps_str(t, ".1f")

    def tick_formatter_y(y, _):
      return strformat.mv_str(y, ".1f")

    formatter_t = pyplot.FuncFormatter(tick_formatter_t)
    formatter_y = pyplot.FuncFormatter(tick_formatter_y)

    n_plots = 1 if self.tx_waveform is None else 2
    _, subplots = pyplot.subplots(n_plots, 1, sharex=True, squeeze=False)
    subplots = subplots[:, 0]

    d = self.decisions
    subplots[0].plot(d.time, d.voltage, color="k", alpha=0.3)
    good = d.scored & d.qualifies
    bad = d.scored & ~d.qualifies
    subplots[0].scatter(d.time[good], d.voltage[good], color="g", s=4)
    subplots[0].scatter(d.time[bad], d.voltage[bad], color="r", s=4)
    subplots[0].scatter(d.time[d.startup],
                        d.voltage[d.startup],
                        color="y",
                        s=4)

    high, mid, low = self.boundaries["from_below"]
    subplots[0].axhline(y=high, color="b", linestyle=":")
    subplots[0].axhline(y=low, color="b", linestyle=":")
    high, mid, low = self.boundaries["from_above"]
    subplots[0].axhline(y=high, color="m", linestyle="--")
    subplots[0].axhline(y=low, color="m", linestyle="--")
    subplots[0].axhline(y=mid, color="k")

    subplots[0].yaxis.set_major_formatter(formatter_y)
    subplots[0].set_title(
        f"RX decisions, {self.result.qualifying_fraction * 100:.2f}% qualify")

    if self.tx_waveform is not None:
      subplots[1].plot(self.tx_waveform[0], self.tx_waveform[1], color="b")
      subplots[1].yaxis.set_major_formatter(formatter_y)
      subplots[1].set_title("TX symbols")

    subplots[-1].xaxis.set_major_formatter(formatter_t)

    pyplot.tight_layout()
    pyplot.savefig(filename, bbox_inches="tight")
    pyplot.close()

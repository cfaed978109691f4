"""Calibration sweep of PAM4 threshold adjustments and RX sampling phase

Searches (static_adjust, dynamic_adjust, rx_offset) for the highest fraction
of RX symbols decided with margin above the noise floor.
"""

from __future__ import annotations

import datetime
import functools
import itertools
from multiprocessing import Pool
from typing import Tuple

import colorama
from colorama import Fore
import numpy as np

from serdes_tools import strformat
from serdes_tools.exceptions import InvalidConfigurationError
from serdes_tools.measurement.pam4 import decision, report
from serdes_tools.signal import resample

colorama.init(autoreset=True)


class Config:
  """Calibration configuration

  Properties:
    tx_clock: float, TX clock rate, GHz
    rx_clock: float, RX sample rate, GHz
    v_max_tx: float, maximum TX voltage, mV
    v_max_rx: float, maximum RX voltage, mV, None will use v_max_tx / 2
    tx_start: float, TX voltage before the capture starts, None will use
      v_max_tx
    rx_start: float, RX voltage before the capture starts

    noise_margin: float, margin a decision must exceed to qualify, mV
    adjust_step: float, increment of both threshold adjustments, mV
    static_max: float, largest static adjustment, None will use vt_high / 4
    dynamic_max: float, largest dynamic adjustment, None will use vt_high / 4
    initial_symbol: int, previous symbol assumed for the first decision
    startup_samples: int, strided samples excluded from scoring at the start

    n_threads: int, processes scoring rx offsets, 1 will not start any
  """

  def __init__(self, **kwargs) -> None:
    """Initialize Configuration

    Args:
      All kwargs passed to self.consume
    """
    # Link
    self.tx_clock = 10.0
    self.rx_clock = 100.0
    self.v_max_tx = 400.0
    self.v_max_rx = None
    self.tx_start = None
    self.rx_start = 0.0

    # Sweep
    self.noise_margin = 10.0
    self.adjust_step = 1.0
    self.static_max = None
    self.dynamic_max = None
    self.initial_symbol = decision.SYMBOL_00
    self.startup_samples = 2

    # Execution
    self.n_threads = 1

    self.consume(kwargs)

  def consume(self, config: dict) -> None:
    """Consume configuration from dictionary

    Args:
      config: Dictionary of configuration values

    Raises:
      KeyError if an configuration parameter is unrecognized
    """
    for k, v in config.items():
      if k not in self.__dict__:
        raise KeyError(f"Unrecognized additional configuration: {k}={v}")
      setattr(self, k, v)

  @property
  def tx_period(self) -> float:
    """TX clock period, ps"""
    return 1000.0 / self.tx_clock

  @property
  def rx_period(self) -> float:
    """RX sample period, ps"""
    return 1000.0 / self.rx_clock

  @property
  def rx_swing(self) -> float:
    if self.v_max_rx is None:
      return self.v_max_tx / 2
    return self.v_max_rx

  @property
  def tx_startup(self) -> float:
    if self.tx_start is None:
      return self.v_max_tx
    return self.tx_start

  @property
  def vt_high(self) -> float:
    return decision.vt_high(self.rx_swing)

  @property
  def stride(self) -> int:
    """RX samples per TX symbol

    Raises:
      InvalidConfigurationError if the clocks are not commensurate
    """
    if self.tx_clock <= 0 or self.rx_clock <= 0:
      raise InvalidConfigurationError(
          f"Clock rates must be positive, tx={self.tx_clock}, "
          f"rx={self.rx_clock}")
    try:
      return resample.stride(self.tx_period, self.rx_period)
    except ValueError as e:
      raise InvalidConfigurationError(str(e)) from e

  def _grid(self, maximum: float) -> np.ndarray:
    if maximum is None:
      maximum = self.vt_high / 4
    n = int(np.floor(maximum / self.adjust_step + 1e-9)) + 1
    return np.arange(n) * self.adjust_step

  @property
  def static_values(self) -> np.ndarray:
    """Static adjustments to sweep [0, static_max] by adjust_step"""
    return self._grid(self.static_max)

  @property
  def dynamic_values(self) -> np.ndarray:
    """Dynamic adjustments to sweep [0, dynamic_max] by adjust_step"""
    return self._grid(self.dynamic_max)

  def validate(self) -> None:
    """Check the configuration describes a valid sweep

    Raises:
      InvalidConfigurationError if the grid would invert boundary ordering or
      a parameter is out of range
    """
    if self.rx_swing <= 0:
      raise InvalidConfigurationError(
          f"Maximum RX voltage must be positive: {self.rx_swing}")
    if self.adjust_step <= 0:
      raise InvalidConfigurationError(
          f"adjust_step must be positive: {self.adjust_step}")
    for name in ["static_max", "dynamic_max"]:
      v = getattr(self, name)
      if v is not None and v < 0:
        raise InvalidConfigurationError(f"{name} must not be negative: {v}")
    if self.initial_symbol not in range(len(decision.SYMBOLS)):
      raise InvalidConfigurationError(
          f"initial_symbol is not a PAM4 symbol: {self.initial_symbol}")
    if self.startup_samples < 0:
      raise InvalidConfigurationError(
          f"startup_samples must not be negative: {self.startup_samples}")
    _ = self.stride
    decision.validate(self.vt_high, self.static_values[-1],
                      self.dynamic_values[-1])


class SweepResult:
  """Best candidate of a calibration sweep

  Properties:
    config: ThresholdConfig of the winner
    rx_offset: RX sample aligned with the TX clock [0, stride)
    qualifying_fraction: Fraction [0, 1] of scored decisions that qualified
    n_qualifying: Number of scored decisions that qualified
    n_total: Number of scored decisions
    n_candidates: Number of candidates evaluated
  """

  def __init__(self,
               config: decision.ThresholdConfig,
               rx_offset: int,
               qualifying_fraction: float,
               n_qualifying: int = None,
               n_total: int = None,
               n_candidates: int = None) -> None:
    self.config = config
    self.rx_offset = int(rx_offset)
    self.qualifying_fraction = float(qualifying_fraction)
    self.n_qualifying = n_qualifying
    self.n_total = n_total
    self.n_candidates = n_candidates

  def to_dict(self) -> dict:
    return {
        "config": self.config.to_dict(),
        "rx_offset": self.rx_offset,
        "qualifying_fraction": self.qualifying_fraction,
        "n_qualifying": self.n_qualifying,
        "n_total": self.n_total,
        "n_candidates": self.n_candidates
    }

  def __repr__(self) -> str:
    return (f"SweepResult(config={self.config!r}, rx_offset={self.rx_offset}, "
            f"qualifying_fraction={self.qualifying_fraction})")


def score(rx_voltages: np.ndarray,
          config: decision.ThresholdConfig,
          rx_offset: int,
          stride: int,
          v_high: float,
          noise_margin: float,
          initial_symbol: int = decision.SYMBOL_00,
          startup_samples: int = 2) -> Tuple[int, int]:
  """Score a single candidate

  Walks every stride-th sample from rx_offset, threading the chosen symbol
  into the next decision. A sample qualifies when its margin exceeds
  noise_margin, or when the raw sample one tick earlier decides the same
  symbol with margin above noise_margin. The first startup_samples strided
  samples are not counted.

  Args:
    rx_voltages: RX sample voltages, one per RX period
    config: Threshold adjustment to score
    rx_offset: First strided sample [0, stride)
    stride: RX samples per TX symbol
    v_high: Nominal high boundary
    noise_margin: Margin a decision must exceed
    initial_symbol: Previous symbol for the first decision
    startup_samples: Number of strided samples excluded from the count

  Returns:
    number of qualifying decisions, number of counted decisions
  """
  s = config.static_adjust
  d = config.dynamic_adjust
  previous = initial_symbol
  n_qualifying = 0
  n_total = 0
  for k, i in enumerate(range(rx_offset, len(rx_voltages), stride)):
    symbol, _, margin = decision.decide(rx_voltages[i], s, d, previous, v_high)
    good = margin > noise_margin
    if not good and i > 0:
      symbol_b, _, margin_b = decision.decide(rx_voltages[i - 1], s, d,
                                              previous, v_high)
      good = symbol_b == symbol and margin_b > noise_margin
    if k >= startup_samples:
      n_total += 1
      if good:
        n_qualifying += 1
    previous = symbol
  return n_qualifying, n_total


def _score_offset(rx_voltages: np.ndarray, rx_offset: int, stride: int,
                  static_values: np.ndarray, dynamic_values: np.ndarray,
                  v_high: float, noise_margin: float, initial_symbol: int,
                  startup_samples: int) -> Tuple[np.ndarray, int]:
  """Score every (static, dynamic) candidate of one rx_offset, see score

  Samples are walked in order once, each decided for the whole grid.

  Returns:
    qualifying counts shape=(len(static_values), len(dynamic_values)),
    number of counted decisions
  """
  s, d = np.meshgrid(static_values, dynamic_values, indexing="ij")
  s = s.ravel()
  d = d.ravel()
  previous = np.full(s.shape, initial_symbol, dtype=np.int8)
  n_qualifying = np.zeros(s.shape, dtype=np.int64)
  n_total = 0
  for k, i in enumerate(range(rx_offset, len(rx_voltages), stride)):
    symbols, _, margins = decision.decide_np(rx_voltages[i], s, d, previous,
                                             v_high)
    good = margins > noise_margin
    if i > 0:
      symbols_b, _, margins_b = decision.decide_np(rx_voltages[i - 1], s, d,
                                                   previous, v_high)
      good |= (symbols_b == symbols) & (margins_b > noise_margin)
    if k >= startup_samples:
      n_total += 1
      n_qualifying += good
    previous = symbols
  return n_qualifying.reshape(len(static_values), len(dynamic_values)), n_total


def _fraction(n_qualifying: int, n_total: int) -> float:
  if n_total == 0:
    return 0.0
  return n_qualifying / n_total


def _better(incumbent: tuple, candidate: tuple) -> tuple:
  """Keep the incumbent unless the candidate is strictly better

  Args:
    incumbent: (static_i, dynamic_i, rx_offset, fraction)
    candidate: (static_i, dynamic_i, rx_offset, fraction)

  Returns:
    Winner of the two
  """
  if candidate[3] > incumbent[3]:
    return candidate
  return incumbent


def sweep(rx_voltages: np.ndarray,
          config: Config = None,
          print_progress: bool = True,
          indent: int = 0) -> SweepResult:
  """Find the threshold adjustment and rx_offset with the most qualifying
  decisions

  Candidates are the product static x dynamic x rx_offset in that nesting
  order. Ties keep the earliest candidate.

  Args:
    rx_voltages: RX sample voltages, one per RX period, not modified
    config: Calibration configuration, None will use defaults
    print_progress: True will print statements along the way, False will not.
    indent: Indent all print statements that much

  Returns:
    Winning SweepResult

  Raises:
    InvalidConfigurationError if config is invalid, see Config.validate
  """
  if config is None:
    config = Config()
  config.validate()

  rx_voltages = np.asarray(rx_voltages, dtype=np.float64)
  stride = config.stride
  static_values = config.static_values
  dynamic_values = config.dynamic_values
  v_high = config.vt_high

  start = datetime.datetime.now()
  n_candidates = len(static_values) * len(dynamic_values) * stride
  if print_progress:
    print(f"{'':>{indent}}{strformat.elapsed_str(start)} {Fore.CYAN}"
          f"Sweeping {n_candidates} candidates over {len(rx_voltages)} "
          f"samples, stride {stride}")

  args = [(rx_voltages, offset, stride, static_values, dynamic_values, v_high,
           config.noise_margin, config.initial_symbol, config.startup_samples)
          for offset in range(stride)]
  if config.n_threads > 1:
    with Pool(min(config.n_threads, stride)) as p:
      scores = p.starmap(_score_offset, args)
  else:
    scores = []
    for a in args:
      scores.append(_score_offset(*a))
      if print_progress:
        print(f"{'':>{indent + 2}}{strformat.elapsed_str(start)} "
              f"Scored rx_offset {a[1]}")

  candidates = (
      (i, j, offset, _fraction(scores[offset][0][i, j], scores[offset][1]))
      for i, j, offset in itertools.product(range(len(static_values)),
                                            range(len(dynamic_values)),
                                            range(stride)))
  i, j, offset, fraction = functools.reduce(_better, candidates)

  result = SweepResult(decision.ThresholdConfig(static_values[i],
                                                dynamic_values[j]),
                       offset,
                       fraction,
                       n_qualifying=int(scores[offset][0][i, j]),
                       n_total=scores[offset][1],
                       n_candidates=n_candidates)

  if print_progress:
    print(f"{'':>{indent}}{strformat.elapsed_str(start)} {Fore.CYAN}"
          f"Best {fraction * 100:.2f}% at "
          f"static={strformat.mv_str(result.config.static_adjust, '.1f')}, "
          f"dynamic={strformat.mv_str(result.config.dynamic_adjust, '.1f')}, "
          f"rx_offset={offset}")
  return result


def annotate(rx_waveform: np.ndarray,
             config: decision.ThresholdConfig,
             rx_offset: int,
             stride: int,
             v_high: float,
             noise_margin: float,
             initial_symbol: int = decision.SYMBOL_00,
             startup_samples: int = 2) -> report.Decisions:
  """Decide every RX sample under one candidate

  The chosen symbol only advances on selected (strided) samples, matching
  score. Selected samples qualify as in score, others on their own margin.

  Args:
    rx_waveform: RX waveform [[t0,..., tn], [v0,..., vn]]
    See score for the rest

  Returns:
    Decisions for every sample
  """
  t = rx_waveform[0]
  v = rx_waveform[1]
  n = len(v)
  symbols = np.zeros(n, dtype=np.int8)
  bounds = np.zeros(n, dtype=np.float64)
  margins = np.zeros(n, dtype=np.float64)
  qualifies = np.zeros(n, dtype=bool)
  selected = np.zeros(n, dtype=bool)
  startup = np.zeros(n, dtype=bool)

  s = config.static_adjust
  d = config.dynamic_adjust
  previous = initial_symbol
  k = 0
  for i in range(n):
    symbol, bound, margin = decision.decide(v[i], s, d, previous, v_high)
    good = margin > noise_margin
    if i >= rx_offset and (i - rx_offset) % stride == 0:
      if not good and i > 0:
        symbol_b, _, margin_b = decision.decide(v[i - 1], s, d, previous,
                                                v_high)
        good = symbol_b == symbol and margin_b > noise_margin
      selected[i] = True
      startup[i] = k < startup_samples
      k += 1
      previous = symbol
    symbols[i] = symbol
    bounds[i] = bound
    margins[i] = margin
    qualifies[i] = good

  return report.Decisions(t, v, symbols, bounds, margins, qualifies, selected,
                          startup)


class Calibration:
  """Calibrate PAM4 decisions against resampled RX samples

  Lazy creation, does not compute anything until run
  """

  def __init__(self,
               rx_waveform: np.ndarray,
               tx_waveform: np.ndarray = None,
               config: Config = None) -> None:
    """Create a new Calibration

    Args:
      rx_waveform: RX waveform [[t0,..., tn], [v0,..., vn]], one sample per
        RX period
      tx_waveform: TX waveform [[t0,..., tn], [v0,..., vn]], one sample per
        TX period, None will omit it from the report
      config: Configuration settings, None will use defaults

    Raises:
      ValueError if a waveform is the wrong shape
    """
    rx_waveform = np.asarray(rx_waveform, dtype=np.float64)
    if len(rx_waveform.shape) != 2 or rx_waveform.shape[0] != 2:
      raise ValueError("rx_waveform should be shape [2, n points]")
    if tx_waveform is not None:
      tx_waveform = np.asarray(tx_waveform, dtype=np.float64)
      if len(tx_waveform.shape) != 2 or tx_waveform.shape[0] != 2:
        raise ValueError("tx_waveform should be shape [2, n points]")
    if config is None:
      config = Config()
    elif not isinstance(config, Config):
      raise ValueError("config must be of type Config")

    self._rx_waveform = rx_waveform
    self._tx_waveform = tx_waveform
    self._config = config
    self._report = None

  @property
  def config(self) -> Config:
    return self._config

  def run(self, print_progress: bool = True, indent: int = 0) -> report.Report:
    """Perform the sweep and decide every sample under the winner

    Args:
      print_progress: True will print statements along the way, False will not.
      indent: Indent all print statements that much

    Returns:
      Report of the winning candidate and its decisions
    """
    start = datetime.datetime.now()
    if print_progress:
      print(f"{'':>{indent}}{strformat.elapsed_str(start)} {Fore.CYAN}"
            "Starting calibration")
      print(f"{'':>{indent}}{strformat.elapsed_str(start)} {Fore.YELLOW}"
            "Step 1: Sweeping threshold adjustments and sampling phase")
    result = sweep(self._rx_waveform[1],
                   config=self._config,
                   print_progress=print_progress,
                   indent=indent + 2)

    if print_progress:
      print(f"{'':>{indent}}{strformat.elapsed_str(start)} {Fore.YELLOW}"
            "Step 2: Deciding samples under the best candidate")
    decisions = annotate(self._rx_waveform,
                         result.config,
                         result.rx_offset,
                         self._config.stride,
                         self._config.vt_high,
                         self._config.noise_margin,
                         initial_symbol=self._config.initial_symbol,
                         startup_samples=self._config.startup_samples)
    if decisions.fraction != result.qualifying_fraction:
      print(f"{'':>{indent + 2}}{Fore.RED}Decisions qualify "
            f"{decisions.fraction * 100:.2f}%, sweep scored "
            f"{result.qualifying_fraction * 100:.2f}%")

    self._report = report.Report(result,
                                 decisions,
                                 v_high=self._config.vt_high,
                                 noise_margin=self._config.noise_margin,
                                 tx_waveform=self._tx_waveform)
    if print_progress:
      print(f"{'':>{indent}}{strformat.elapsed_str(start)} {Fore.CYAN}"
            "Completed calibration")
    return self._report

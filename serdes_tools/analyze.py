"""Analyze the signal coming out of a simulated channel

Reads a .raw trace, resamples TX and RX onto their clock grids, then
calibrates the PAM4 decisions.

Typical usage:
  serdes-analyze channel.raw --json channel.json --plot channel.png
"""

from __future__ import annotations

import argparse
import datetime
import os
import sys
from typing import List

import colorama
from colorama import Fore

from serdes_tools import strformat
from serdes_tools.exceptions import InvalidConfigurationError, TraceError
from serdes_tools.measurement.pam4 import calibration, report
from serdes_tools.signal import resample, trace

colorama.init(autoreset=True)


def analyze(path: os.PathLike,
            config: calibration.Config = None,
            tx_gain: float = 1e3,
            rx_gain: float = 1e3,
            print_progress: bool = True,
            indent: int = 0) -> report.Report:
  """Calibrate PAM4 decisions of a .raw trace

  Args:
    path: Path to the .raw trace
    config: Calibration configuration, None will use defaults
    tx_gain: Multiplier from TX record to mV
    rx_gain: Multiplier from RX record to mV
    print_progress: True will print statements along the way, False will not.
    indent: Indent all print statements that much

  Returns:
    Report of the winning candidate

  Raises:
    TraceError if the trace cannot be read, see signal.trace
    InvalidConfigurationError if config is invalid
  """
  if config is None:
    config = calibration.Config()
  config.validate()

  start = datetime.datetime.now()
  if print_progress:
    print(f"{'':>{indent}}{strformat.elapsed_str(start)} {Fore.CYAN}"
          f"Reading {path}")
  entries = trace.read(path, tx_gain=tx_gain, rx_gain=rx_gain)

  if print_progress:
    print(f"{'':>{indent}}{strformat.elapsed_str(start)} {Fore.CYAN}"
          f"Resampling {len(entries)} entries, TX every "
          f"{strformat.ps_str(config.tx_period, '.1f')}, RX every "
          f"{strformat.ps_str(config.rx_period, '.1f')}")
  tx_waveform, rx_waveform = resample.resample(entries,
                                               config.tx_period,
                                               config.rx_period,
                                               tx_start=config.tx_startup,
                                               rx_start=config.rx_start)
  if print_progress:
    print(f"{'':>{indent + 2}}{tx_waveform.shape[1]} TX samples, "
          f"{rx_waveform.shape[1]} RX samples")

  c = calibration.Calibration(rx_waveform, tx_waveform, config=config)
  return c.run(print_progress=print_progress, indent=indent)


def main(argv: List[str] = None) -> int:
  """Analyze a .raw trace from the command line

  Args:
    argv: Command line arguments, None will use sys.argv

  Returns:
    Exit code, 0 on success
  """
  parser = argparse.ArgumentParser(
      description="Calibrate PAM4 decision thresholds and sampling phase of a "
      "simulated link")
  parser.add_argument("raw_file", help="ASCII .raw trace of the simulation")
  parser.add_argument("--tx-clock",
                      type=float,
                      default=10.0,
                      metavar="GHZ",
                      help="TX clock rate")
  parser.add_argument("--rx-clock",
                      type=float,
                      default=100.0,
                      metavar="GHZ",
                      help="RX sample rate")
  parser.add_argument("--v-max-tx",
                      type=float,
                      default=400.0,
                      metavar="MV",
                      help="maximum TX voltage")
  parser.add_argument("--v-max-rx",
                      type=float,
                      metavar="MV",
                      help="maximum RX voltage, default half of TX")
  parser.add_argument("--noise-margin",
                      type=float,
                      default=10.0,
                      metavar="MV",
                      help="margin a decision must exceed to qualify")
  parser.add_argument("--step",
                      type=float,
                      default=1.0,
                      metavar="MV",
                      help="threshold adjustment increment")
  parser.add_argument("--static-max",
                      type=float,
                      metavar="MV",
                      help="largest static adjustment, default vt_high / 4")
  parser.add_argument("--dynamic-max",
                      type=float,
                      metavar="MV",
                      help="largest dynamic adjustment, default vt_high / 4")
  parser.add_argument("--threads",
                      type=int,
                      default=1,
                      metavar="N",
                      help="processes scoring sampling phases")
  parser.add_argument("--json", metavar="PATH", help="save report to JSON")
  parser.add_argument("--plot", metavar="PATH", help="save decisions plot")
  parser.add_argument("--samples",
                      action="store_true",
                      default=False,
                      help="print every RX sample")
  parser.add_argument("--quiet",
                      "-q",
                      action="store_true",
                      default=False,
                      help="do not print progress")
  args = parser.parse_args(argv)

  config = calibration.Config(tx_clock=args.tx_clock,
                              rx_clock=args.rx_clock,
                              v_max_tx=args.v_max_tx,
                              v_max_rx=args.v_max_rx,
                              noise_margin=args.noise_margin,
                              adjust_step=args.step,
                              static_max=args.static_max,
                              dynamic_max=args.dynamic_max,
                              n_threads=args.threads)
  try:
    r = analyze(args.raw_file, config=config, print_progress=not args.quiet)
  except (TraceError, InvalidConfigurationError) as e:
    print(f"{Fore.RED}ERROR: {e}", file=sys.stderr)
    return 1

  r.pretty_print(samples=args.samples)
  if args.json:
    r.save_json(args.json, indent=2)
  if args.plot:
    r.save_plot(args.plot)
  return 0


if __name__ == "__main__":
  sys.exit(main())

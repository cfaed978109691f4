"""Errors raised while reading a capture or configuring a calibration

Every error aborts the current run, nothing is retried or defaulted.
"""


class TraceError(Exception):
  """Base for errors reading a capture trace
  """


class TruncatedTraceError(TraceError):
  """Trace ended before a record was complete

  Distinct from a normal end-of-stream, which only happens between entries.
  """


class MalformedRecordError(TraceError, ValueError):
  """Trace record could not be parsed as the expected numeric type
  """


class UnopenableSourceError(TraceError, OSError):
  """Trace artifact could not be opened or read
  """


class InvalidConfigurationError(ValueError):
  """Threshold adjustments or sweep parameters would invert the boundary
  ordering or otherwise cannot be evaluated
  """

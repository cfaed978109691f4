"""Interpolation of waveform between sampled values
"""


def lerp(y0: float, y1: float, a: float) -> float:
  """Linearly blend two values

  Written as (1 - a) * y0 + a * y1 so a = 0 returns y0 and a = 1 returns y1
  exactly.

  Args:
    y0: Value at a = 0
    y1: Value at a = 1
    a: Blend fraction, normally [0, 1]

  Returns:
    Blended value
  """
  return (1.0 - a) * y0 + a * y1


def linear(x: float, x0: float, y0: float, x1: float, y1: float) -> float:
  """Evaluate the line through (x0, y0) and (x1, y1) at x

  Args:
    x: The x-coordinate at which to evaluate
    x0: The x-coordinate of the first point
    y0: The y-coordinate of the first point
    x1: The x-coordinate of the second point
    y1: The y-coordinate of the second point

  Returns:
    Interpolated y at x

  Raises:
    ValueError if x0 == x1
  """
  if x1 == x0:
    raise ValueError("Points must have distinct x-coordinates")
  return lerp(y0, y1, (x - x0) / (x1 - x0))

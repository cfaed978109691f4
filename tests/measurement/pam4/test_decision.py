"""Test module serdes_tools.measurement.pam4.decision
"""

import numpy as np

from serdes_tools import exceptions
from serdes_tools.measurement.pam4 import decision

from tests import base


class TestDecision(base.TestBase):
  """Test PAM4 decisions
  """

  def test_vt_high(self):
    self.assertAlmostEqual(decision.vt_high(100.0), 66.6666666666)
    self.assertAlmostEqual(decision.vt_high(200.0), 133.3333333333)

  def test_nominal(self):
    v_high = 66.7
    symbol, boundary, margin = decision.decide(70.0, 0.0, 0.0,
                                               decision.SYMBOL_00, v_high)
    self.assertEqual(symbol, decision.SYMBOL_11)
    self.assertEqual(boundary, v_high)
    self.assertAlmostEqual(margin, 3.3)

    # Inner regions report the nearer boundary
    symbol, boundary, margin = decision.decide(50.0, 0.0, 0.0, 0, v_high)
    self.assertEqual(symbol, decision.SYMBOL_10)
    self.assertEqual(boundary, v_high)
    self.assertAlmostEqual(margin, 16.7)

    symbol, boundary, margin = decision.decide(10.0, 0.0, 0.0, 0, v_high)
    self.assertEqual(symbol, decision.SYMBOL_10)
    self.assertEqual(boundary, 0.0)
    self.assertEqual(margin, 10.0)

    symbol, boundary, margin = decision.decide(-10.0, 0.0, 0.0, 0, v_high)
    self.assertEqual(symbol, decision.SYMBOL_01)
    self.assertEqual(boundary, 0.0)
    self.assertEqual(margin, 10.0)

    symbol, boundary, margin = decision.decide(-60.0, 0.0, 0.0, 0, v_high)
    self.assertEqual(symbol, decision.SYMBOL_01)
    self.assertEqual(boundary, -v_high)
    self.assertAlmostEqual(margin, 6.7)

    symbol, boundary, margin = decision.decide(-200.0, 0.0, 0.0, 0, v_high)
    self.assertEqual(symbol, decision.SYMBOL_00)
    self.assertEqual(boundary, -v_high)
    self.assertAlmostEqual(margin, 133.3)

    # Exactly on a boundary belongs to the region above with zero margin
    self.assertEqual(decision.decide(v_high, 0.0, 0.0, 0, v_high),
                     (decision.SYMBOL_11, v_high, 0.0))
    self.assertEqual(decision.decide(0.0, 0.0, 0.0, 0, v_high),
                     (decision.SYMBOL_10, 0.0, 0.0))
    self.assertEqual(decision.decide(-v_high, 0.0, 0.0, 0, v_high),
                     (decision.SYMBOL_01, -v_high, 0.0))

    # Equidistant goes to mid
    self.assertEqual(decision.decide(30.0, 0.0, 0.0, 0, 60.0),
                     (decision.SYMBOL_10, 0.0, 30.0))
    self.assertEqual(decision.decide(-30.0, 0.0, 0.0, 0, 60.0),
                     (decision.SYMBOL_01, 0.0, 30.0))

  def test_static(self):
    v_high = 100.0
    # High pulled down, low pulled up, regardless of previous symbol
    for previous in range(4):
      high, mid, low = decision.boundaries(v_high, 10.0, 0.0, previous)
      self.assertEqual(high, 90.0)
      self.assertEqual(mid, 0.0)
      self.assertEqual(low, -90.0)

    symbol, boundary, margin = decision.decide(95.0, 0.0, 0.0, 0, v_high)
    self.assertEqual(symbol, decision.SYMBOL_10)
    symbol, boundary, margin = decision.decide(95.0, 10.0, 0.0, 0, v_high)
    self.assertEqual(symbol, decision.SYMBOL_11)
    self.assertEqual(boundary, 90.0)
    self.assertEqual(margin, 5.0)

    symbol, boundary, margin = decision.decide(-95.0, 10.0, 0.0, 3, v_high)
    self.assertEqual(symbol, decision.SYMBOL_00)
    self.assertEqual(boundary, -90.0)
    self.assertEqual(margin, 5.0)

  def test_dynamic(self):
    v_high = 100.0
    s = 5.0
    d = 10.0
    # From below, low boundary tightened further
    for previous in [decision.SYMBOL_00, decision.SYMBOL_01]:
      high, mid, low = decision.boundaries(v_high, s, d, previous)
      self.assertEqual(high, 95.0)
      self.assertEqual(mid, 0.0)
      self.assertEqual(low, -85.0)
    # From above, high boundary tightened further
    for previous in [decision.SYMBOL_10, decision.SYMBOL_11]:
      high, mid, low = decision.boundaries(v_high, s, d, previous)
      self.assertEqual(high, 85.0)
      self.assertEqual(mid, 0.0)
      self.assertEqual(low, -95.0)

    c = decision.ThresholdConfig(s, d)
    b = c.boundaries(v_high)
    self.assertEqual(b["from_below"], (95.0, 0.0, -85.0))
    self.assertEqual(b["from_above"], (85.0, 0.0, -95.0))

    # Decision depends on the previous symbol
    self.assertEqual(decision.decide(90.0, s, d, decision.SYMBOL_11, v_high),
                     (decision.SYMBOL_11, 85.0, 5.0))
    self.assertEqual(decision.decide(90.0, s, d, decision.SYMBOL_00, v_high),
                     (decision.SYMBOL_10, 95.0, 5.0))
    self.assertEqual(decision.decide(-90.0, s, d, decision.SYMBOL_01, v_high),
                     (decision.SYMBOL_00, -85.0, 5.0))
    self.assertEqual(decision.decide(-90.0, s, d, decision.SYMBOL_10, v_high),
                     (decision.SYMBOL_01, -95.0, 5.0))

  def test_totality(self):
    v_high = 133.0
    for _ in range(2000):
      v = self._RNG.uniform(-400, 400)
      s = self._RNG.uniform(0, v_high / 2)
      d = self._RNG.uniform(0, v_high / 2 - 1)
      previous = int(self._RNG.integers(0, 4))
      symbol, boundary, margin = decision.decide(v, s, d, previous, v_high)
      self.assertIn(symbol, [0, 1, 2, 3])
      self.assertGreaterEqual(margin, 0)
      self.assertAlmostEqual(abs(v - boundary), margin)
      high, mid, low = decision.boundaries(v_high, s, d, previous)
      self.assertGreater(high, mid)
      self.assertGreater(mid, low)
      self.assertIn(boundary, [high, mid, low])

  def test_monotonic_tightening(self):
    v_high = 133.0
    step = 0.5
    n = 0
    for _ in range(500):
      v = self._RNG.uniform(-v_high, v_high)
      s = self._RNG.uniform(0, v_high / 4)
      d = self._RNG.uniform(0, v_high / 4)
      previous = int(self._RNG.integers(0, 4))
      symbol, _, margin = decision.decide(v, s, d, previous, v_high)
      if symbol not in [decision.SYMBOL_10, decision.SYMBOL_01]:
        continue
      for s_next, d_next in [(s + step, d), (s, d + step)]:
        symbol_next, _, margin_next = decision.decide(v, s_next, d_next,
                                                      previous, v_high)
        if symbol_next != symbol:
          continue
        n += 1
        self.assertLessEqual(margin_next, margin)
    self.assertGreater(n, 100)

    # Crossing into an outer region resets the margin
    v_high = 66.7
    results = [decision.decide(60.0, s, 0.0, 0, v_high) for s in [0, 5, 10]]
    self.assertEqual(
        [r[0] for r in results],
        [decision.SYMBOL_10, decision.SYMBOL_10, decision.SYMBOL_11])
    margins = [r[2] for r in results]
    self.assertAlmostEqual(margins[0], 6.7)
    self.assertAlmostEqual(margins[1], 1.7)
    self.assertAlmostEqual(margins[2], 3.3)
    self.assertGreater(margins[2], margins[1])

  def test_invalid(self):
    v_high = 100.0
    self.assertRaises(exceptions.InvalidConfigurationError, decision.decide,
                      0.0, -1.0, 0.0, 0, v_high)
    self.assertRaises(exceptions.InvalidConfigurationError, decision.decide,
                      0.0, 0.0, -1.0, 0, v_high)
    self.assertRaises(exceptions.InvalidConfigurationError, decision.decide,
                      0.0, 60.0, 40.0, 0, v_high)
    self.assertRaises(exceptions.InvalidConfigurationError, decision.decide,
                      0.0, 0.0, 0.0, 0, 0.0)
    self.assertRaises(ValueError, decision.decide, 0.0, 0.0, 0.0, 4, v_high)

    c = decision.ThresholdConfig(50.0, 50.0)
    self.assertRaises(exceptions.InvalidConfigurationError, c.validate, v_high)
    self.assertRaises(ValueError, c.boundaries, v_high)
    decision.ThresholdConfig(50.0, 49.0).validate(v_high)

  def test_threshold_config(self):
    c = decision.ThresholdConfig(1, 2.5)
    self.assertIsInstance(c.static_adjust, float)
    self.assertEqual(c.to_dict(), {"static_adjust": 1.0, "dynamic_adjust": 2.5})
    self.assertEqual(c, decision.ThresholdConfig(1.0, 2.5))
    self.assertNotEqual(c, decision.ThresholdConfig(2.5, 1.0))
    self.assertNotEqual(c, (1.0, 2.5))
    self.assertIn("dynamic_adjust=2.5", repr(c))

  def test_decide_np(self):
    v_high = 133.0
    s, d = np.meshgrid(np.arange(34.0), np.arange(34.0), indexing="ij")
    s = s.ravel()
    d = d.ravel()
    for _ in range(50):
      v = self._RNG.uniform(-300, 300)
      previous = self._RNG.integers(0, 4, s.shape).astype(np.int8)
      symbols, bounds, margins = decision.decide_np(v, s, d, previous, v_high)
      self.assertEqual(symbols.shape, s.shape)
      self.assertEqual(symbols.dtype, np.int8)
      for i in range(0, len(s), 37):
        symbol, boundary, margin = decision.decide(v, s[i], d[i],
                                                   int(previous[i]), v_high)
        self.assertEqual(symbols[i], symbol)
        self.assertEqual(bounds[i], boundary)
        self.assertEqual(margins[i], margin)

    # Voltages on the boundaries and equidistant from two
    for v in [v_high, 0.0, -v_high, v_high / 2, -v_high / 2, 100.0, -100.0]:
      previous = np.full(s.shape, 2, dtype=np.int8)
      previous[::2] = 1
      symbols, bounds, margins = decision.decide_np(v, s, d, previous, v_high)
      for i in range(len(s)):
        symbol, boundary, margin = decision.decide(v, s[i], d[i],
                                                   int(previous[i]), v_high)
        self.assertEqual(symbols[i], symbol)
        self.assertEqual(bounds[i], boundary)
        self.assertEqual(margins[i], margin)

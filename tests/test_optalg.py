import unittest

import numpy as np
import numpy.testing as npt
import sigpy as sp
import sigpy.mri as mr

import optalg
import prox
import sense
from errors import ConfigurationError


def _problem(pattern=None, nc=4, n=32, dtype=np.complex64):
  img = sp.shepp_logan((n, n), dtype=dtype)[None, None, None, None, ...]
  mps = mr.birdcage_maps((nc, n, n), dtype=np.complex64)
  mps /= sp.rss(mps, axes=(0,))
  mps = mps[None, None, :, None, ...]

  ksp_shape = (1, 1, nc, 1, n, n)
  if pattern is None:
    pattern = np.ones((1, 1, 1, 1, n, n), dtype=np.float32)
  A = sense.encoding_op(mps, pattern, ksp_shape)
  b = sense.encoding_op(mps, np.ones_like(pattern), ksp_shape)(img)
  return (A, (pattern * b).astype(np.complex64), img.astype(np.complex64))


class TestConstrained(unittest.TestCase):

  def test_zero_iterations(self):
    (A, b, _) = _problem()
    proxg = prox.L1Wav(A.ishape, 1., randshift=False)
    x = optalg.constrained(0, 5, A, b, 1e-3, proxg, 10, verbose=False)
    self.assertEqual(list(x.shape), list(A.ishape))
    npt.assert_array_equal(x, 0)

  def test_fully_sampled_wavelet(self):
    (A, b, img) = _problem()
    proxg = prox.L1Wav(A.ishape, 1., randshift=False)
    eps = 1e-3 * np.linalg.norm(b)

    x = optalg.constrained(100, 5, A, b, eps, proxg, 10, verbose=False)

    baseline = A.H(b)
    npt.assert_allclose(baseline, img, atol=1e-4)
    self.assertLess(optalg.calc_perc_err(baseline, x, auto_normalize=False),
                    5)

  def test_fully_sampled_tv(self):
    (A, b, _) = _problem()
    (T, proxg, _) = prox.create_l1(A.ishape, use_tv=True)
    eps = 1e-3 * np.linalg.norm(b)

    x = optalg.constrained(150, 10, A, b, eps, proxg, 10, T=T,
                           verbose=False)

    self.assertLess(optalg.calc_perc_err(A.H(b), x, auto_normalize=False), 5)

  def test_zero_pattern(self):
    (A, _, _) = _problem(pattern=np.zeros((1, 1, 1, 1, 32, 32),
                                            dtype=np.float32))
    b = np.ones(A.oshape, dtype=np.complex64)
    for use_tv in (False, True):
      (T, proxg, _) = prox.create_l1(A.ishape, use_tv=use_tv,
                                     rng=np.random.default_rng(0))
      x = optalg.constrained(10, 5, A, b, 1e-3, proxg, 10, T=T,
                             verbose=False)
      npt.assert_array_equal(x, 0)

  def test_large_eps(self):
    (A, b, _) = _problem()
    proxg = prox.L1Wav(A.ishape, 1., randshift=False)
    x = optalg.constrained(20, 5, A, b, 2 * np.linalg.norm(b), proxg, 10,
                           lamda=0.1, verbose=False)
    npt.assert_allclose(x, 0)

  def test_reference_only_reported(self):
    pattern = np.zeros((1, 1, 1, 1, 32, 32), dtype=np.float32)
    pattern[..., ::3, :] = 1
    pattern[..., 12:20, :] = 1
    (A, b, img) = _problem(pattern=pattern)
    eps = 1e-2 * np.linalg.norm(b)

    proxg = prox.L1Wav(A.ishape, 1., randshift=False)
    x1 = optalg.constrained(10, 5, A, b, eps, proxg, 10, verbose=False)
    x2 = optalg.constrained(10, 5, A, b, eps, proxg, 10, ref=img,
                            g=lambda x: np.abs(x).sum(), verbose=True)
    npt.assert_array_equal(x1, x2)

  def test_seeded_wavelet_shifts(self):
    (A, b, _) = _problem()
    eps = 1e-2 * np.linalg.norm(b)

    lst_x = []
    for _ in range(2):
      proxg = prox.L1Wav(A.ishape, 1., rng=np.random.default_rng(3))
      lst_x.append(optalg.constrained(5, 5, A, b, eps, proxg, 10,
                                      verbose=False))
    npt.assert_array_equal(lst_x[0], lst_x[1])

  def test_real_value_constraint(self):
    (A, b, _) = _problem(dtype=np.float32)
    proxg = prox.L1Wav(A.ishape, 1., randshift=False)
    x = optalg.constrained(10, 5, A, b, 1e-2 * np.linalg.norm(b), proxg, 10,
                           rvc=True, verbose=False)
    npt.assert_array_equal(x.imag, 0)
    self.assertGreater(np.linalg.norm(x), 0)

  def test_early_stop(self):
    (A, b, _) = _problem()
    proxg = prox.L1Wav(A.ishape, 1., randshift=False)
    eps = 1e-3 * np.linalg.norm(b)
    x = optalg.constrained(500, 5, A, b, eps, proxg, 10, ptol=1e-3,
                           verbose=False)
    self.assertLess(optalg.calc_perc_err(A.H(b), x, auto_normalize=False), 5)

  def test_mismatched_shapes(self):
    (A, b, _) = _problem()
    proxg = prox.L1Wav(A.ishape, 1.)

    T = sp.linop.Identity([1, 1, 1, 1, 16, 16])
    with self.assertRaises(ConfigurationError):
      optalg.constrained(1, 5, A, b, 1., proxg, 10, T=T, verbose=False)
    with self.assertRaises(ConfigurationError):
      optalg.constrained(1, 5, A, b[..., :16], 1., proxg, 10, verbose=False)
    with self.assertRaises(ConfigurationError):
      optalg.constrained(1, 5, A, b, 1., sp.prox.L1Reg([3, 32, 32], 1.), 10,
                         verbose=False)
    with self.assertRaises(ConfigurationError):
      optalg.constrained(1, 5, A, b, 1., proxg, 10, ref=np.zeros((32, 32)),
                         verbose=False)


class TestPercErr(unittest.TestCase):

  def test_identical(self):
    x = np.arange(1, 10, dtype=np.complex64)
    self.assertAlmostEqual(optalg.calc_perc_err(x, x), 0, places=4)
    self.assertAlmostEqual(optalg.calc_perc_err(x, 2 * x), 0, places=4)

  def test_unnormalized(self):
    x = np.ones(4, dtype=np.complex64)
    self.assertAlmostEqual(optalg.calc_perc_err(x, 2 * x,
                                                auto_normalize=False), 100,
                           places=4)

  def test_zero(self):
    x = np.ones(4, dtype=np.complex64)
    self.assertEqual(optalg.calc_perc_err(np.zeros(4), x), 100)
    self.assertEqual(optalg.calc_perc_err(x, np.zeros(4)), 100)


if __name__ == "__main__":
  unittest.main()

import numpy as np
import sigpy as sp

import dims
from errors import ConfigurationError

def estimate_pattern(ksp, coil_axis=dims.DIM_COIL):
  r"""Sampling pattern from acquired k-space.

  Inputs:
    ksp (Array): k-space in the canonical layout.
    coil_axis (Int): Axis collapsed in the pattern.

  Returns:
    pattern (Array): 1 where any coil holds nonzero signal, 0 elsewhere.
  """
  if ksp.ndim != dims.DIMS:
    raise ConfigurationError("k-space has %d dimensions, expected %d."
                             % (ksp.ndim, dims.DIMS))

  device = sp.get_device(ksp)
  xp = device.xp
  with device:
    msk = xp.any(ksp != 0, axis=coil_axis, keepdims=True)
    return msk.astype(xp.float32)

def pattern_stats(pattern, ksp_shape=None):
  """Size, samples and acceleration over the coil-collapsed k-space grid.

  A pattern broadcast along an axis counts once for every position it
  covers. Only the first coil of a per-coil pattern is counted.
  """
  if ksp_shape is None:
    ksp_shape = pattern.shape
  size = int(np.prod(dims.collapse_dims(ksp_shape, (dims.DIM_COIL,))))

  device = sp.get_device(pattern)
  xp = device.xp
  with device:
    pat = pattern[..., :1, :, :, :]
    energy = xp.linalg.norm(pat.ravel()).item()**2
    samples = int(round(energy * size / pat.size))
  acc = size/samples if samples > 0 else float("inf")
  return (size, samples, acc)

def estimate_scaling(ksp, calib_size=32, percentile=90):
  r"""Intensity scale of k-space.

  The central calibration region is transformed to a low resolution image,
  coils are combined by root-sum-of-squares and the given percentile of the
  magnitude is returned. The estimate is linear in ksp, so data divided by
  its own scale estimates to one.

  Inputs:
    ksp (Array): k-space in the canonical layout.
    calib_size (Int): Size of the central region per spatial axis.
    percentile (Float): Percentile of the magnitude image.

  Returns:
    scaling (Float): Zero if ksp holds no signal.
  """
  device = sp.get_device(ksp)
  xp = device.xp
  with device:
    oshape = list(ksp.shape)
    for ax in dims.FFT_AXES:
      oshape[ax] = min(ksp.shape[ax], calib_size)
    cal = sp.resize(ksp, oshape)
    img = sp.rss(sp.ifft(cal, axes=dims.FFT_AXES), axes=(dims.DIM_COIL,))
    return float(xp.percentile(xp.abs(img), percentile))

def scale_kspace(ksp, scaling):
  """Divides ksp in place by scaling. Zero skips scaling."""
  if scaling != 0:
    ksp /= scaling
  return ksp

import sigpy as sp

import dims
from errors import ConfigurationError

def image_shape(ksp_shape, mps_shape):
  """Image shape: k-space batch axes, one entry per map, coil collapsed."""
  shape = dims.collapse_dims(ksp_shape, (dims.DIM_COIL,))
  shape[dims.DIM_MAPS] = mps_shape[dims.DIM_MAPS]
  return shape

def check_shapes(ksp_shape, mps_shape, pat_shape=None):
  for (name, shape) in (("k-space", ksp_shape), ("sensitivities", mps_shape),
                        ("pattern", pat_shape)):
    if shape is not None and len(shape) != dims.DIMS:
      raise ConfigurationError("%s has %d dimensions, expected %d."
                               % (name, len(shape), dims.DIMS))

  for ax in dims.FFT_AXES + (dims.DIM_COIL,):
    if ksp_shape[ax] != mps_shape[ax]:
      raise ConfigurationError("Dimensions of kspace and sensitivities do "
                               "not match!")

  if ksp_shape[dims.DIM_MAPS] != 1:
    raise ConfigurationError("k-space has %d maps, expected 1."
                             % ksp_shape[dims.DIM_MAPS])

  if mps_shape[dims.DIM_TIME] not in (1, ksp_shape[dims.DIM_TIME]):
    raise ConfigurationError("Sensitivities do not broadcast over k-space.")

  if pat_shape is not None:
    for (n, m) in zip(pat_shape, ksp_shape):
      if n not in (1, m):
        raise ConfigurationError("Dimensions of pattern %s and kspace %s do "
                                 "not match!"
                                 % (tuple(pat_shape), tuple(ksp_shape)))

def maps_op(mps, ksp_shape):
  r"""Sensitivity operator.

  Weights the image of every map by its coil sensitivities and sums over
  maps, giving one virtual image per coil.

  Inputs:
    mps (Array): Sensitivities in the canonical layout.
    ksp_shape (Tuple): Shape of the multi-coil data.

  Returns:
    S (Linop): Image to coil images.
  """
  M = sp.linop.Multiply(image_shape(ksp_shape, mps.shape), mps)
  A = sp.linop.Sum(M.oshape, (dims.DIMS + dims.DIM_MAPS,))
  R = sp.linop.Reshape(ksp_shape, A.oshape)
  return R * A * M

def encoding_op(mps, pattern, ksp_shape):
  r"""Multi-coil Cartesian encoding operator.

  .. math::
    A = P F S

  with S the sensitivities, F the centered orthonormal FFT over the spatial
  axes and P the sampling pattern. A zero pattern or zero sensitivities
  give a zero operator.

  Inputs:
    mps (Array): Sensitivities in the canonical layout.
    pattern (Array): Sampling pattern broadcastable to ksp_shape.
    ksp_shape (Tuple): Shape of the multi-coil data.

  Returns:
    A (Linop): Image to sampled k-space.
  """
  ksp_shape = list(ksp_shape)
  check_shapes(ksp_shape, mps.shape, pattern.shape)

  S = maps_op(mps, ksp_shape)
  F = sp.linop.FFT(ksp_shape, axes=dims.FFT_AXES)
  P = sp.linop.Multiply(ksp_shape, pattern)
  return P * F * S

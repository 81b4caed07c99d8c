"""Canonical data dimensions for multi-coil reconstruction.

Every array carries DIMS axes, indexed from the end as sigpy does:

  (time, maps, coil, z, y, x)

The leading time axis is an extra/batch axis. 2D data has z = 1.
"""
from errors import ConfigurationError

DIMS = 6

DIM_X    = -1
DIM_Y    = -2
DIM_Z    = -3
DIM_COIL = -4
DIM_MAPS = -5
DIM_TIME = -6

FFT_AXES = (DIM_X, DIM_Y, DIM_Z)


def to_canonical(input):
  """Pads leading singleton axes until input has DIMS axes."""
  if input.ndim > DIMS:
    raise ConfigurationError("Array has %d dimensions, at most %d supported."
                             % (input.ndim, DIMS))
  return input.reshape((1,) * (DIMS - input.ndim) + tuple(input.shape))


def collapse_dims(shape, axes):
  """Returns shape with every axis in axes reduced to one."""
  shape = list(shape)
  for ax in axes:
    shape[ax] = 1
  return shape

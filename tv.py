import sigpy as sp

import dims

def gradient(shape, axes=dims.FFT_AXES):
  """Circular forward differences, stacked along a new leading axis.

  Axes of length one are skipped, so 2D images get two gradient components.
  """
  ndim = len(shape)
  diff_axes = tuple(ax for ax in axes if shape[ax] > 1) or tuple(axes)
  return sp.linop.FiniteDifference(shape,
                                   axes=[ax % ndim for ax in diff_axes])

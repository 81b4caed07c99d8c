import numpy as np
import sigpy as sp

import dims
import tv

def wavelet_params(shape, axes, minsize):
  """Transformed axes and decomposition level.

  Only axes longer than one are transformed. The level is the largest one
  whose coarsest block is at least minsize on every transformed axis, with
  minsize clamped to the image size.
  """
  if np.isscalar(minsize):
    minsize = (minsize,) * len(axes)
  axes = [ax % len(shape) for ax in axes]

  lst_level = []
  for (ax, m) in zip(axes, minsize):
    if shape[ax] > 1:
      m = min(shape[ax], m)
      lst_level.append(int(np.floor(np.log2(shape[ax]/m))))

  wav_axes = tuple(ax for ax in axes if shape[ax] > 1) or tuple(axes)
  level = min(lst_level) if len(lst_level) > 0 else 0
  return (wav_axes, level)

class L1Wav(sp.prox.Prox):
  def __init__(self, shape, lamda, axes=dims.FFT_AXES, minsize=16,
               wave_name="db4", randshift=True, rng=None):
    self.lamda = lamda
    (self.axes, self.level) = wavelet_params(shape, axes, minsize)
    self.W = sp.linop.Wavelet(shape, axes=self.axes, wave_name=wave_name,
                              level=self.level)
    self.randshift = randshift
    # Source of the random shifts.
    self.rng = np.random.default_rng() if rng is None else rng
    super().__init__(shape)

  def _shift(self):
    if not self.randshift or self.level == 0:
      return [0] * len(self.axes)
    return [int(self.rng.integers(2**self.level)) for _ in self.axes]

  def _prox(self, alpha, input):
    dev = sp.get_device(input)
    xp = dev.xp
    with dev:
      shift = self._shift()

      x = xp.roll(input, shift, axis=self.axes)
      x = self.W.H(sp.thresh.soft_thresh(self.lamda * alpha, self.W(x)))
      return xp.roll(x, [-k for k in shift], axis=self.axes)

def create_l1(img_shape, use_tv=False, minsize=16, wave_name="db4",
              randshift=True, rng=None):
  r"""Sparsifying transform and its l1 proximal operator.

  Inputs:
    img_shape (Tuple): Image shape.
    use_tv (Bool): Total variation instead of wavelets.
    minsize (Int or Tuple): Smallest wavelet block per spatial axis.
    wave_name (String): Wavelet, see PyWavelets.
    randshift (Bool): Randomly shift the wavelet grid on every call.
    rng (None or Generator): Source of the random shifts.

  Returns:
    l1op (Linop): Analysis operator T.
    l1prox (Prox): Soft-thresholding on the range of T. Its strength is 1
                   and is scaled by the step size of each call.
    l1op_obj (Linop): Operator whose l1-norm is the sparsity objective.
  """
  if use_tv:
    l1op = tv.gradient(img_shape)
    return (l1op, sp.prox.L1Reg(l1op.oshape, 1.), l1op)

  l1op = sp.linop.Identity(img_shape)
  l1prox = L1Wav(img_shape, 1., minsize=minsize, wave_name=wave_name,
                 randshift=randshift, rng=rng)
  return (l1op, l1prox, l1prox.W)

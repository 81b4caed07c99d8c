devnum   = -1    # Device to run optimization on. (-1) -> CPU.
ny       = 128   # Image size.
nx       = 128
nc       = 8     # Number of coils.
accel    = 4     # Poisson-disc acceleration.
calib    = 24    # Fully sampled calibration region.
noise    = 1e-3  # Standard deviation of complex noise.
eps      = 0.05  # Data consistency error, relative to the k-space norm.
max_iter = 100
use_tv   = False
seed     = 0

if __name__ == "__main__":

  import dataclasses

  import numpy as np
  import sigpy as sp
  import sigpy.mri as mr

  import bpsense
  import optalg
  import utils

  rng = np.random.default_rng(seed)

  img = sp.shepp_logan((ny, nx), dtype=np.complex64)
  mps = mr.birdcage_maps((nc, ny, nx), dtype=np.complex64)
  msk = mr.poisson((ny, nx), accel, calib=(calib, calib),
                   dtype=np.float32, seed=seed)

  ksp = sp.fft(mps * img, axes=(-1, -2))
  ksp += noise * (rng.standard_normal(ksp.shape) +
                  1j * rng.standard_normal(ksp.shape))
  ksp = (msk * ksp).astype(np.complex64)

  # Canonical layout: (time, maps, coil, z, y, x).
  ksp = ksp[None, None, :, None, ...]
  mps = mps[None, None, :, None, ...]
  ref = img[None, None, None, None, ...]

  ksp_norm = np.linalg.norm(ksp)
  scaling = utils.estimate_scaling(ksp)

  conf = dataclasses.replace(bpsense.DEFAULTS, eps=eps * ksp_norm/scaling,
                             max_iter=max_iter, use_tv=use_tv, seed=seed)
  rec = bpsense.reconstruct(ksp.copy(), mps, conf, image_truth=ref,
                            device=devnum)

  print("NRMSE: %0.2f%%" % optalg.calc_perc_err(ref, rec))

r"""Basis pursuit denoising for SENSE/ESPIRiT reconstruction.

.. math::
  \min_x \| T x \|_1 + \frac{\lambda}{2} \| x \|_2^2 \quad
  \text{s.t.} \quad \| y - A x \|_2 \leq \epsilon

with A the multi-coil encoding operator and T a wavelet transform or the
spatial gradient (total variation).
"""
import argparse
import dataclasses
import sys
import time

import numpy as np
import sigpy as sp

import dims
import optalg
import prox
import sense
import utils
from errors import ConfigurationError, ResourceError


@dataclasses.dataclass(frozen=True)
class ReconConfig:
  l2_lambda: float = 0.
  eps: float = 1e-2
  rho: float = 10.
  max_iter: int = 50
  max_cg_iter: int = 10
  rvc: bool = False
  use_tv: bool = False
  ptol: float = -float("inf")
  minsize: int = 16
  wave_name: str = "db4"
  randshift: bool = True
  seed: int = None
  verbose: bool = True
  # Operator whose l1-norm is reported as objective; set by the driver.
  l1op_obj: object = None


DEFAULTS = ReconConfig()


def bpsense_recon(conf, mps, pattern, l1op, l1prox, ksp, image_truth=None,
                  out=None):
  r"""Runs ADMM for one reconstruction.

  Inputs:
    conf (ReconConfig): Reconstruction parameters.
    mps (Array): Sensitivities.
    pattern (Array): Sampling pattern.
    l1op (Linop): Analysis operator T.
    l1prox (Prox): Proximal operator on the range of T.
    ksp (Array): Scaled k-space.
    image_truth (None or Array): Only used for reporting.
    out (None or Array): If given, the image is written into it.

  Returns:
    image (Array): Reconstruction on the CPU.
  """
  A = sense.encoding_op(mps, pattern, ksp.shape)

  device = sp.get_device(ksp)
  xp = device.xp

  g = None
  if conf.l1op_obj is not None:
    W = conf.l1op_obj
    def g(x):
      return xp.linalg.norm(W(x).ravel(), ord=1).item()

  if image_truth is not None:
    image_truth = sp.to_device(image_truth, device)

  x = optalg.constrained(conf.max_iter, conf.max_cg_iter, A, ksp, conf.eps,
                         l1prox, conf.rho, T=l1op, lamda=conf.l2_lambda,
                         rvc=conf.rvc, g=g, ptol=conf.ptol, ref=image_truth,
                         verbose=conf.verbose)
  x = sp.to_device(x, sp.cpu_device)

  if out is None:
    return x
  out[...] = x
  return out


def reconstruct(ksp, mps, conf=DEFAULTS, pattern=None, image_truth=None,
                scale_fn=utils.estimate_scaling, device=-1, out=None):
  r"""Full reconstruction from multi-coil k-space.

  Estimates the sampling pattern unless given, scales k-space in place,
  builds the sparsity operators and runs the solver.

  Inputs:
    ksp (Array): k-space in the canonical layout. Scaled in place.
    mps (Array): Sensitivities in the canonical layout.
    conf (ReconConfig): Reconstruction parameters.
    pattern (None or Array): Sampling pattern. Estimated if None.
    image_truth (None or Array): Only used for reporting.
    scale_fn (Function): Returns the scale of k-space.
    device (Int or Device): Device to run on. (-1) -> CPU.
    out (None or Array): If given, the image is written into it.

  Returns:
    image (Array): Reconstruction on the CPU.
  """
  start_time = time.perf_counter()

  sense.check_shapes(ksp.shape, mps.shape,
                     None if pattern is None else pattern.shape)
  img_shape = sense.image_shape(ksp.shape, mps.shape)
  if image_truth is not None and list(image_truth.shape) != img_shape:
    raise ConfigurationError("Truth image %s does not match image %s."
                             % (tuple(image_truth.shape), tuple(img_shape)))
  if out is not None and list(out.shape) != img_shape:
    raise ConfigurationError("Output %s does not match image %s."
                             % (tuple(out.shape), tuple(img_shape)))

  verbose = conf.verbose
  if verbose:
    if mps.shape[dims.DIM_MAPS] > 1:
      print("%d maps." % mps.shape[dims.DIM_MAPS])
      print("ESPIRiT reconstruction.")
    if conf.l2_lambda > 0:
      print("l2 regularization: %f" % conf.l2_lambda)
    print("use Total Variation" if conf.use_tv else "use Wavelets")
    if image_truth is not None:
      print("Compare to truth")

  device = sp.Device(device)
  with device:
    ksp = sp.to_device(ksp, device)
    mps = sp.to_device(mps, device)

    if pattern is None:
      pattern = utils.estimate_pattern(ksp)
    else:
      pattern = sp.to_device(pattern, device)

    (size, samples, acc) = utils.pattern_stats(pattern, ksp.shape)
    if verbose:
      print("Size: %d Samples: %d Acc: %.2f" % (size, samples, acc))

    scaling = scale_fn(ksp)
    if verbose:
      print("Scaling: %f" % scaling)
    utils.scale_kspace(ksp, scaling)

    rng = np.random.default_rng(conf.seed)
    (l1op, l1prox, l1op_obj) = prox.create_l1(img_shape, use_tv=conf.use_tv,
                                              minsize=conf.minsize,
                                              wave_name=conf.wave_name,
                                              randshift=conf.randshift,
                                              rng=rng)
    conf = dataclasses.replace(conf, l1op_obj=l1op_obj)

    image = bpsense_recon(conf, mps, pattern, l1op, l1prox, ksp,
                          image_truth=image_truth, out=out)

  if verbose:
    print("Total Time: %f" % (time.perf_counter() - start_time))
  return image


def load_array(fname, writable=False):
  """Memory-maps an .npy array in the canonical layout.

  A writable array is copy-on-write, the file is never modified.
  """
  try:
    arr = np.load(fname, mmap_mode="c" if writable else "r")
  except (OSError, ValueError) as e:
    raise ResourceError("Could not load %s: %s" % (fname, e)) from e
  return dims.to_canonical(arr)


def save_array(fname, image):
  try:
    out = np.lib.format.open_memmap(fname, mode="w+", dtype=np.complex64,
                                    shape=tuple(image.shape))
  except (OSError, ValueError) as e:
    raise ResourceError("Could not create %s: %s" % (fname, e)) from e
  out[...] = image
  out.flush()
  return out


def config_from_args(args):
  return dataclasses.replace(DEFAULTS, l2_lambda=args.l2lambda, eps=args.eps,
                             rho=args.rho, max_iter=args.maxiter,
                             rvc=args.rvc, use_tv=args.tv, ptol=args.ptol,
                             seed=args.seed)


def parse_args(argv=None):
  parser = argparse.ArgumentParser(
    prog="bpsense",
    description="Perform basis pursuit denoising for SENSE/ESPIRiT "
                "reconstruction: min_x ||T x||_1 + lambda/2 ||x||_2^2 "
                "subject to: ||y - Ax||_2 <= eps")
  parser.add_argument("kspace", help="k-space (.npy)")
  parser.add_argument("sensitivities", help="sensitivities (.npy)")
  parser.add_argument("output", help="output image (.npy)")
  parser.add_argument("-r", "--l2lambda", type=float,
                      default=DEFAULTS.l2_lambda,
                      help="l2 regularization parameter")
  parser.add_argument("-e", "--eps", type=float, default=DEFAULTS.eps,
                      help="data consistency error")
  parser.add_argument("-i", "--maxiter", type=int, default=DEFAULTS.max_iter,
                      help="number of ADMM iterations")
  parser.add_argument("-u", "--rho", type=float, default=DEFAULTS.rho,
                      help="ADMM penalty parameter")
  parser.add_argument("-c", "--rvc", action="store_true",
                      help="real-value constraint")
  parser.add_argument("-t", "--tv", action="store_true",
                      help="use TV norm")
  parser.add_argument("-p", "--pattern", default=None,
                      help="sampling pattern (.npy)")
  parser.add_argument("-F", "--truth", default=None, help="truth image")
  parser.add_argument("-g", "--gpu", action="store_true", help="use GPU")
  parser.add_argument("--ptol", type=float, default=DEFAULTS.ptol,
                      help="l1-percentage tolerance between iterates")
  parser.add_argument("--seed", type=int, default=None,
                      help="seed of the wavelet shifts")
  return parser.parse_args(argv)


def main(argv=None):
  args = parse_args(argv)
  conf = config_from_args(args)

  try:
    ksp = load_array(args.kspace, writable=True)
    mps = load_array(args.sensitivities)
    # Loaded as is, shapes are only checked against the k-space.
    pattern = None if args.pattern is None else load_array(args.pattern)
    image_truth = None if args.truth is None else load_array(args.truth)

    image = reconstruct(ksp, mps, conf, pattern=pattern,
                        image_truth=image_truth,
                        device=0 if args.gpu else -1)
    save_array(args.output, image)
  except (ConfigurationError, ResourceError) as e:
    print(e, file=sys.stderr)
    return 1
  return 0


if __name__ == "__main__":
  sys.exit(main())

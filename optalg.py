import numpy as np
import sigpy as sp

from tqdm.auto import tqdm

from errors import ConfigurationError

def constrained(num_iters, num_normal, A, b, eps, proxg, rho, T=None,
                lamda=0, rvc=False, g=None, ptol=-float("inf"), ref=None,
                verbose=True):
  r"""Constrained ADMM.

  Solves for the following optimization problem:

  .. math::
    \min_x g(T x) + \frac{\lambda}{2} \| x \|_2^2 \quad
    \text{s.t.} \quad \| A x - b \|_2 \leq \epsilon

  The constraint and the regularization are split as z_1 = A x and
  z_2 = T x. Each iteration solves an inner least squares problem for x
  with conjugate gradient, projects onto the data consistency ball and
  applies proxg with step size 1/rho. rho is fixed for the run.

  Based on:
    Boyd, S., Parikh, N., Chu, E., Peleato, B., & Eckstein, J.
    Distributed optimization and statistical learning via the alternating
    direction method of multipliers.
    Foundations and Trends in Machine Learning, 3(1), 1-122.
    DOI: 10.1561/2200000016

  Inputs:
    num_iters (Int): Number of ADMM iterations.
    num_normal (Int): Number of conjugate gradient iterations per x-update.
    A (Linop): Forward linear operator.
    b (Array): Measurement.
    eps (Float): Radius of the data consistency ball.
    proxg (Prox): Proximal operator of g on the range of T.
    rho (Float): ADMM penalty.
    T (None or Linop): Analysis operator. Identity if None.
    lamda (Float): l2-regularization. Skipped if 0.
    rvc (Bool): Project x onto real images after every x-update.
    g (None or Function): Objective of T x, only reported.
    ptol (Float): l1-percentage tolerance between iterates.
    ref (None or Array): Reference to compare against, only reported.
    verbose (Bool): Print information.

  Returns:
    x (Array): Reconstruction.
  """
  if T is None:
    T = sp.linop.Identity(A.ishape)

  if list(T.ishape) != list(A.ishape):
    raise ConfigurationError("Transform input %s does not match image %s."
                             % (T.ishape, A.ishape))
  if list(b.shape) != list(A.oshape):
    raise ConfigurationError("Measurement %s does not match operator %s."
                             % (list(b.shape), A.oshape))
  if list(proxg.shape) != list(T.oshape):
    raise ConfigurationError("Proximal operator %s does not match "
                             "transform %s." % (proxg.shape, T.oshape))
  if ref is not None and list(ref.shape) != list(A.ishape):
    raise ConfigurationError("Reference %s does not match image %s."
                             % (list(ref.shape), A.ishape))

  device = sp.get_device(b)
  xp = device.xp

  if verbose:
    print("Constrained ADMM.")
    print("> rho: %0.2e" % rho)
    print("> eps: %0.2e" % eps)
    if lamda > 0:
      print("> l2 regularization: %0.2e" % lamda)
    if rvc:
      print("> Real-value constraint.")

  with device:

    lst_err = None
    if ref is not None:
      ref = sp.to_device(ref, device)
      lst_err = []

    x = xp.zeros(A.ishape, dtype=b.dtype)
    z1 = A(x)
    z2 = T(x)
    u1 = xp.zeros_like(z1)
    u2 = xp.zeros_like(z2)

    proj = sp.prox.L2Proj(A.oshape, eps, y=b)

    N = A.N + T.N
    if lamda > 0:
      N = N + (lamda/rho) * sp.linop.Identity(A.ishape)

    def prox_f(x, v1, v2):
      # Updates x in place, warm started from the previous iterate.
      sp.app.App(sp.alg.ConjugateGradient(N, A.H(v1) + T.H(v2), x,
                                          max_iter=num_normal),
                                          leave_pbar=False,
                                          show_pbar=False,
                                          record_time=False).run()
      if rvc:
        x = xp.real(x).astype(b.dtype)
      return x

    if verbose:
      pbar = tqdm(total=num_iters, desc="ADMM", leave=True)
    for k in range(num_iters):
      x_old = x.copy()

      x = prox_f(x, z1 - u1, z2 - u2)
      Ax = A(x)
      Tx = T(x)

      z1 = proj(1, Ax + u1)
      z2 = proxg(1/rho, Tx + u2)

      u1 += Ax - z1
      u2 += Tx - z2

      if lst_err is not None:
        lst_err.append(calc_perc_err(ref, x))

      calc_tol = calc_perc_err(x_old, x, ord=1)
      if verbose:
        postfix = {"ptol": "%0.2f%%" % calc_tol,
                   "dc": "%0.2e" % xp.linalg.norm(Ax - b).item()}
        if g is not None:
          postfix["obj"] = "%0.2e" % g(x)
        if lst_err is not None:
          postfix["err"] = "%0.2f%%" % lst_err[-1]
        pbar.set_postfix(postfix)
        pbar.update()
        pbar.refresh()

      if calc_tol <= ptol:
        break

    if verbose:
      pbar.close()
      if lst_err:
        print("> Error against reference: %0.2f%%" % lst_err[-1])
    return x

def calc_perc_err(ref, x, ord=2, auto_normalize=True):
  dev = sp.get_device(x)
  xp = dev.xp
  with dev:
    ref = sp.to_device(ref, dev)
    ref_norm = xp.linalg.norm(ref.ravel(), ord=ord).item()
    x_norm = xp.linalg.norm(x.ravel(), ord=ord).item()
    if ref_norm == 0 or (auto_normalize and x_norm == 0):
      return 100
    if auto_normalize:
      err = xp.linalg.norm((ref/ref_norm - x/x_norm).ravel(), ord=ord).item()
    else:
      err = xp.linalg.norm((ref - x).ravel(), ord=ord).item()/ref_norm
  if np.isnan(err) or np.isinf(err):
    return 100
  return 100 * err

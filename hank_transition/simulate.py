"""
Forward simulation of the wealth distribution along a transition path.
"""

from typing import NamedTuple

import numpy as np

from .block import MNSHousehold
from .distribution import MASS_TOL, aggregate_assets, check_mass, forward_dist


class ForwardPaths(NamedTuple):
    C: np.ndarray        # length T; interior periods filled, anchors are NaN
    L: np.ndarray
    A: np.ndarray        # assets held at the end of period t (distribution of t+1)
    D: np.ndarray        # (nk*nz, T) distribution at the start of each period


def simulate_forward(D0, cpol_path, Rpath, wpath, div_path, tau_path, p, block=None, mass_tol=MASS_TOL):
    """
    Given the initial distribution D0 (period 2 onwards, the economy starts in
    steady state) and the household policy panel, simulate aggregate
    consumption, effective labour supply and asset holdings for t = 2..T-1.

    Raises DistributionError (with the failing period, 1-based) as soon as a
    propagated distribution stops summing to one.
    """
    if block is None:
        block = MNSHousehold()
    T = len(Rpath)

    C = np.full(T, np.nan)
    L = np.full(T, np.nan)
    A = np.full(T, np.nan)
    D = np.empty((len(D0), T))
    D[:, 0] = D0
    D[:, 1] = D0

    for t in range(1, T - 1):
        cpols = block.reshape_c(cpol_path[:, t], p)
        C[t], L[t] = block.aggregate_C_L(D[:, t], cpols, Rpath[t], wpath[t], tau_path[t], div_path[t], p)
        Pi = block.forwardmat(cpols, Rpath[t], wpath[t], tau_path[t], div_path[t], p)
        D[:, t + 1] = forward_dist(D[:, t], Pi)
        A[t] = aggregate_assets(D[:, t + 1], p)

        check_mass(D[:, t + 1], period=t + 2, tol=mass_tol)

    return ForwardPaths(C=C, L=L, A=A, D=D)

"""
Wealth distribution: transition kernels, propagation and aggregation.

The distribution is a vector over k_grid x z_grid of length nk*nz, stored in
productivity-major blocks (state index iz*nk + ik), so that aggregate assets
are D . repeat(k_grid, nz). Kernels are CSR matrices with rows indexing the
current state and columns the next state; one period forward is Pi' D.
Off-grid savings are split between the two neighbouring grid points
(Young's lottery).
"""

import numpy as np
from numba import njit
from scipy import sparse

from .errors import DistributionError
from .household import policies_on_grid

MASS_TOL = 1e-6


# =============================================================================
# Kernel construction (Numba)
# =============================================================================
@njit(cache=False)
def get_interp_weights(x, grid):
    n = len(grid)
    if x <= grid[0]:
        return 0, 1, 1.0
    if x >= grid[-1]:
        return n - 2, n - 1, 0.0
    lo = 0
    hi = n - 1
    while hi - lo > 1:
        mid = (lo + hi) // 2
        if grid[mid] > x:
            hi = mid
        else:
            lo = mid
    w_lo = (grid[hi] - x) / (grid[hi] - grid[lo])
    return lo, hi, w_lo


@njit(cache=False)
def build_transition_sparse_data(bprime, k_grid, Pz):
    """Triplets (row=current state, col=next state, prob) for the lottery kernel."""
    nk = len(k_grid)
    nz = Pz.shape[0]
    nnz = 2 * nk * nz * nz
    rows = np.zeros(nnz, dtype=np.int64)
    cols = np.zeros(nnz, dtype=np.int64)
    data = np.zeros(nnz)

    idx = 0
    for iz in range(nz):
        for ik in range(nk):
            s = iz * nk + ik
            lo, hi, w_lo = get_interp_weights(bprime[ik, iz], k_grid)
            for izp in range(nz):
                pz = Pz[iz, izp]
                if pz <= 0.0:
                    continue
                if w_lo > 0.0:
                    rows[idx] = s
                    cols[idx] = izp * nk + lo
                    data[idx] = pz * w_lo
                    idx += 1
                if w_lo < 1.0:
                    rows[idx] = s
                    cols[idx] = izp * nk + hi
                    data[idx] = pz * (1.0 - w_lo)
                    idx += 1

    return rows[:idx], cols[:idx], data[:idx]


def forwardmat(c_pol, R, w, tau, div, p):
    """Sparse transition kernel for one period given the (nb, nz) policy and prices."""
    _, _, bprime = policies_on_grid(c_pol, R, w, tau, div, p)
    rows, cols, data = build_transition_sparse_data(
        np.ascontiguousarray(bprime), np.ascontiguousarray(p.k_grid), np.ascontiguousarray(p.Pz)
    )
    n_states = p.nk * p.nz
    return sparse.csr_matrix((data, (rows, cols)), shape=(n_states, n_states))


# =============================================================================
# Propagation / aggregation
# =============================================================================
def forward_dist(D, Pi):
    """Next-period distribution Pi' D."""
    if Pi.shape[0] != len(D):
        raise ValueError(f"kernel has {Pi.shape[0]} rows but distribution has {len(D)} states")
    return Pi.T @ D


def check_mass(D, period=None, tol=MASS_TOL):
    mass = float(np.sum(D))
    if abs(mass - 1.0) >= tol:
        raise DistributionError(
            f"distribution mass {mass:.12f} deviates from 1 by more than {tol:g} (period {period})",
            period=period, mass=mass,
        )
    return mass


def aggregate_C_L(D, c_pol, R, w, tau, div, p):
    """Aggregate consumption and effective labour supply for one period."""
    c, l, _ = policies_on_grid(c_pol, R, w, tau, div, p)
    zl = l * np.asarray(p.z_grid)[None, :]
    # (nk, nz) -> productivity-major flat vector to match D
    C = float(D @ c.T.ravel())
    L = float(D @ zl.T.ravel())
    return C, L


def aggregate_assets(D, p):
    return float(D @ np.tile(p.k_grid, p.nz))


def stationary_distribution(c_pol, R, w, tau, div, p, D_init=None, tol=1e-13, max_iter=20000, verbose=False):
    """Invariant distribution of the kernel at constant prices (power iteration)."""
    Pi = forwardmat(c_pol, R, w, tau, div, p)
    if D_init is None:
        D = np.repeat(np.asarray(p.Gamma), p.nk) / p.nk
    else:
        D = np.asarray(D_init, dtype=np.float64).copy()

    for i in range(max_iter):
        D_new = forward_dist(D, Pi)
        D_new /= D_new.sum()
        diff = float(np.max(np.abs(D_new - D)))
        D = D_new
        if verbose and i % 500 == 0:
            print(f"    [Dist] it={i}, diff={diff:.2e}")
        if diff < tol:
            break
    return D

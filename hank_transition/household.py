"""
Household problem of the reference (McKay-Nakamura-Steinsson style) block.

    max E sum beta^t [ c^(1-gamma)/(1-gamma) - chi * l^(1+psi)/(1+psi) ]
    s.t. c + b'/R = b + w*z*l + transfer(z),   b' >= b_grid[0]

transfer(z) = div * tw(z) / (Gamma'tw) - tau * tw(z): dividends and taxes
both fall on the households carrying tax weight. Labour follows from the
intratemporal condition chi * l^psi = w * z * c^(-gamma).

Consumption policies live on `b_grid` (nb points), stored as (nb, nz)
arrays or as flat columns of length nb*nz in productivity-major blocks.
Backward induction uses the endogenous grid method; the borrowing-constrained
region is solved by a safeguarded Newton step (Numba).
"""

import numpy as np
from numba import njit


# =============================================================================
# Interpolation / constrained solve (Numba)
# =============================================================================
@njit(cache=False)
def interp_extrap(xp, fp, x):
    """Piecewise-linear interpolation of (xp, fp) at x, linear extrapolation at both ends."""
    n = len(xp)
    m = len(x)
    out = np.empty(m, dtype=np.float64)
    for i in range(m):
        xi = x[i]
        if xi <= xp[0]:
            lo = 0
        elif xi >= xp[n - 1]:
            lo = n - 2
        else:
            lo = 0
            hi = n - 1
            while hi - lo > 1:
                mid = (lo + hi) // 2
                if xp[mid] > xi:
                    hi = mid
                else:
                    lo = mid
        slope = (fp[lo + 1] - fp[lo]) / (xp[lo + 1] - xp[lo])
        out[i] = fp[lo] + slope * (xi - xp[lo])
    return out


@njit(cache=False)
def solve_constrained_c(cash, wz, gamma, psi, chi, tol=1e-12, max_it=200):
    """
    Consumption when b' hits the borrowing limit:
        c = cash + wz * l(c),   l(c) = (wz * c^(-gamma) / chi)^(1/psi)
    f(c) = c - cash - K c^(-gamma/psi) is increasing, so a Newton step kept
    inside a shrinking bracket always converges.
    """
    K = wz * (wz / chi) ** (1.0 / psi)
    x = gamma / psi
    lo = 1e-12
    hi = max(cash, 0.0) + 1.0
    while hi - cash - K * hi ** (-x) < 0.0:
        hi *= 2.0
    c = hi
    for _ in range(max_it):
        f = c - cash - K * c ** (-x)
        if abs(f) < tol or hi - lo < 1e-15:
            break
        if f > 0.0:
            hi = c
        else:
            lo = c
        c_new = c - f / (1.0 + x * K * c ** (-x - 1.0))
        if c_new <= lo or c_new >= hi:
            c_new = 0.5 * (lo + hi)
        c = c_new
    return c


@njit(cache=False)
def constrained_consumption(cash, wz, gamma, psi, chi):
    out = np.empty(len(cash), dtype=np.float64)
    for i in range(len(cash)):
        out[i] = solve_constrained_c(cash[i], wz, gamma, psi, chi)
    return out


# =============================================================================
# Static pieces
# =============================================================================
def labor_supply(c, wz, p):
    return (wz * c ** (-p.gamma) / p.chi) ** (1.0 / p.psi)


def transfers(tau, div, p):
    """Net lump-sum income by productivity state: dividends minus taxes."""
    tw = np.asarray(p.tax_weights)
    return div * tw / p.weighted_productivity - tau * tw


def reshape_c(col, p):
    """Flat policy column (nb*nz, productivity-major) -> (nb, nz) array."""
    col = np.asarray(col, dtype=np.float64)
    if col.shape != (p.nb * p.nz,):
        raise ValueError(f"policy column must have {p.nb * p.nz} entries, got {col.shape}")
    return col.reshape(p.nz, p.nb).T


def flatten_c(c_pol):
    """Inverse of reshape_c."""
    return np.ascontiguousarray(np.asarray(c_pol, dtype=np.float64).T).ravel()


def policies_on_grid(c_pol, R, w, tau, div, p):
    """
    Evaluate the (nb, nz) consumption policy on the distribution grid k_grid.
    Returns c, l and next-period assets b', each of shape (nk, nz).
    """
    k = np.asarray(p.k_grid)
    b = np.asarray(p.b_grid)
    wz = w * np.asarray(p.z_grid)
    trans = transfers(tau, div, p)

    c = np.empty((p.nk, p.nz))
    for iz in range(p.nz):
        c[:, iz] = interp_extrap(b, np.ascontiguousarray(c_pol[:, iz]), k)
    c = np.maximum(c, 1e-12)
    l = labor_supply(c, wz[None, :], p)
    bprime = R * (k[:, None] + wz[None, :] * l + trans[None, :] - c)
    return c, l, bprime


# =============================================================================
# Backward induction (EGM)
# =============================================================================
def backward_step(c_next, R, w, tau, div, beta, p):
    """c_t(b, z) on b_grid given c_{t+1}(b', z') on b_grid and period-t prices."""
    b = np.asarray(p.b_grid)
    wz = w * np.asarray(p.z_grid)
    trans = transfers(tau, div, p)

    # E[u'(c') | z] at each b' on the grid
    Emu = (c_next ** (-p.gamma)) @ np.asarray(p.Pz).T
    c_endo = (beta * R * Emu) ** (-1.0 / p.gamma)
    l_endo = labor_supply(c_endo, wz[None, :], p)
    b_endo = c_endo + b[:, None] / R - wz[None, :] * l_endo - trans[None, :]

    c = np.empty_like(c_next)
    for iz in range(p.nz):
        c[:, iz] = interp_extrap(np.ascontiguousarray(b_endo[:, iz]), np.ascontiguousarray(c_endo[:, iz]), b)
        # below the first endogenous point the borrowing limit binds
        constrained = b < b_endo[0, iz]
        if constrained.any():
            cash = b[constrained] + trans[iz] - b[0] / R
            c[constrained, iz] = constrained_consumption(cash, wz[iz], p.gamma, p.psi, p.chi)
    return c


def solveback(c_terminal, wpath, Rpath, tau_path, div_path, beta, p):
    """
    Backward induction over the horizon, starting from the terminal policy.
    Returns the policy panel of shape (nb*nz, T); column t holds period-t
    consumption (column T-1 is the terminal policy itself).
    """
    T = len(Rpath)
    panel = np.empty((p.nb * p.nz, T))
    c_next = np.asarray(c_terminal, dtype=np.float64)
    panel[:, T - 1] = flatten_c(c_next)
    for t in range(T - 2, -1, -1):
        c_next = backward_step(c_next, Rpath[t], wpath[t], tau_path[t], div_path[t], beta, p)
        panel[:, t] = flatten_c(c_next)
    return panel


def stationary_policy(R, w, tau, div, p, c_init=None, tol=1e-10, max_iter=5000, verbose=False):
    """Iterate the backward step at constant prices until the policy stops moving."""
    if c_init is None:
        wz = w * np.asarray(p.z_grid)
        cash = (R - 1.0) / R * np.asarray(p.b_grid)[:, None] + wz[None, :] + transfers(tau, div, p)[None, :]
        c = np.maximum(cash, 0.1)
    else:
        c = np.asarray(c_init, dtype=np.float64).copy()

    for it in range(max_iter):
        c_new = backward_step(c, R, w, tau, div, p.beta, p)
        diff = float(np.max(np.abs(c_new - c)))
        c = c_new
        if verbose and it % 200 == 0:
            print(f"    [EGM] it={it}, diff={diff:.2e}")
        if diff < tol:
            break
    return c

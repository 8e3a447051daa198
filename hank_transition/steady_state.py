"""
Steady-state container: the initial condition and terminal anchor of a transition.

Computing general-equilibrium steady-state prices is outside this package;
a SteadyState is either loaded from disk or assembled at given aggregate
prices with `steady_state_at_prices`, which solves the household side only.
"""

import os
from dataclasses import dataclass

import numpy as np

from .block import MNSHousehold
from .distribution import aggregate_C_L, stationary_distribution
from .household import flatten_c, stationary_policy


MARKET_TOL = 1e-6     # max |C - Y|, |L - Y| for a steady state to count as an equilibrium


def tax_rate(R, Y, p):
    """Tax rate that services debt B*Y at gross rate R (government budget constraint)."""
    R = np.asarray(R, dtype=np.float64)
    return p.B * Y / p.weighted_productivity * (1.0 - 1.0 / R)


@dataclass(frozen=True, eq=False)
class SteadyState:
    w: float
    div: float
    Y: float
    R: float
    tau: float
    c_policies: np.ndarray   # flat, nb*nz
    D: np.ndarray            # flat, nk*nz

    def save(self, path):
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        np.savez_compressed(path,
                            w=self.w, div=self.div, Y=self.Y, R=self.R, tau=self.tau,
                            c_policies=self.c_policies, D=self.D)
        return path

    @classmethod
    def load(cls, path):
        with np.load(path) as f:
            return cls(w=float(f["w"]), div=float(f["div"]), Y=float(f["Y"]),
                       R=float(f["R"]), tau=float(f["tau"]),
                       c_policies=np.array(f["c_policies"]), D=np.array(f["D"]))


def market_gaps(ss, p, block=None):
    """
    Goods and labour market residuals C - Y and L - Y of a steady state (S = 1,
    so labour demand equals Y). Both are zero for an equilibrium anchor.
    """
    if block is None:
        block = MNSHousehold()
    c_pol = block.reshape_c(ss.c_policies, p)
    C, L = block.aggregate_C_L(ss.D, c_pol, ss.R, ss.w, ss.tau, ss.div, p)
    return C - ss.Y, L - ss.Y


def steady_state_at_prices(p, w=None, Y=1.0, R=None, verbose=False):
    """
    Household-stationary state at fixed aggregates: w defaults to 1/mu (zero
    inflation, unit price dispersion), R to Rbar, div = Y - w*Y, tau from the
    budget constraint. C and L are printed so the caller can judge how far the
    point is from clearing the goods and labour markets.
    """
    w = 1.0 / p.mu if w is None else float(w)
    R = p.Rbar if R is None else float(R)
    div = Y - w * Y
    tau = float(tax_rate(R, Y, p))

    c_pol = stationary_policy(R, w, tau, div, p)
    D = stationary_distribution(c_pol, R, w, tau, div, p)
    if verbose:
        C, L = aggregate_C_L(D, c_pol, R, w, tau, div, p)
        print(f"Household SS at w={w:.6f}, R={R:.6f}: C={C:.6f}, L={L:.6f}, Y={Y:.6f}")

    return SteadyState(w=w, div=div, Y=float(Y), R=R, tau=tau,
                       c_policies=flatten_c(c_pol), D=D)

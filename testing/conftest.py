"""
Shared fixtures.

`DiscountedEulerHousehold` is a small analytic household block with an exact
steady state: assets never move (the kernel only shuffles productivity),
consumption follows a discounted Euler equation

    c_t(z) = c_ss(z) * (c_{t+1}(z) / c_ss(z))^delta * (beta R_t)^(-1/gamma),

and labour comes from chi l^psi = w z c^(-gamma), with chi chosen so that
effective labour equals output at w = 1/mu. Used for the exact properties of
the solver (no-shock idempotence, round trip, MNS scenario).
"""

import numpy as np
import pytest
from scipy import sparse

from hank_transition.block import HouseholdBlock
from hank_transition.calibration import make_params
from hank_transition.household import flatten_c, reshape_c
from hank_transition.steady_state import SteadyState, steady_state_at_prices, tax_rate

RBAR_Q = 1.01 ** 0.25


class DiscountedEulerHousehold(HouseholdBlock):

    def __init__(self, p, c_by_z=(0.8, 1.0, 1.2), delta=0.85):
        assert p.nb == p.nk
        self.delta = delta
        self.c_ss = np.tile(np.asarray(c_by_z, dtype=np.float64), (p.nb, 1))
        z = np.asarray(p.z_grid)
        c = np.asarray(c_by_z, dtype=np.float64)
        w_ss = 1.0 / p.mu
        self.C_ss = float(np.asarray(p.Gamma) @ c)
        eff = float(np.asarray(p.Gamma) @ (z * (w_ss * z * c ** (-p.gamma)) ** (1.0 / p.psi)))
        self.chi = (eff / self.C_ss) ** p.psi
        self.kernel = sparse.kron(sparse.csr_matrix(np.asarray(p.Pz)), sparse.identity(p.nk), format="csr")
        self.calls = 0

    def reshape_c(self, col, p):
        return reshape_c(col, p)

    def solveback(self, c_terminal, wpath, Rpath, tau_path, div_path, beta, p):
        self.calls += 1
        T = len(Rpath)
        panel = np.empty((p.nb * p.nz, T))
        c = np.asarray(c_terminal, dtype=np.float64)
        panel[:, T - 1] = flatten_c(c)
        for t in range(T - 2, -1, -1):
            c = self.c_ss * (c / self.c_ss) ** self.delta * (beta * Rpath[t]) ** (-1.0 / p.gamma)
            panel[:, t] = flatten_c(c)
        return panel

    def labor(self, c_pol, w, p):
        return (w * np.asarray(p.z_grid)[None, :] * c_pol ** (-p.gamma) / self.chi) ** (1.0 / p.psi)

    def aggregate_C_L(self, D, c_pol, R, w, tau, div, p):
        zl = self.labor(c_pol, w, p) * np.asarray(p.z_grid)[None, :]
        return float(D @ flatten_c(c_pol)), float(D @ flatten_c(zl))

    def forwardmat(self, c_pol, R, w, tau, div, p):
        return self.kernel

    def steady_state(self, p):
        w = 1.0 / p.mu
        Y = self.C_ss
        return SteadyState(w=w, div=Y - w * Y, Y=Y, R=p.Rbar, tau=float(tax_rate(p.Rbar, Y, p)),
                           c_policies=flatten_c(self.c_ss),
                           D=np.repeat(np.asarray(p.Gamma), p.nk) / p.nk)


class LeakyHousehold(DiscountedEulerHousehold):
    """Kernel loses 10% of the mass every period."""

    def forwardmat(self, c_pol, R, w, tau, div, p):
        return 0.9 * self.kernel


@pytest.fixture
def toy_params():
    return make_params(
        beta=1.0 / RBAR_Q, Rbar=RBAR_Q,
        Pz=((0.90, 0.05, 0.05), (0.05, 0.90, 0.05), (0.05, 0.05, 0.90)),
        tax_weights=(1.0, 1.0, 1.0),
        nb=5, nk=5, b_max=10.0,
    )


@pytest.fixture
def toy_block(toy_params):
    return DiscountedEulerHousehold(toy_params)


@pytest.fixture
def toy_ss(toy_block, toy_params):
    return toy_block.steady_state(toy_params)


@pytest.fixture(scope="session")
def small_params():
    return make_params(nb=30, nk=60, b_max=40.0)


@pytest.fixture(scope="session")
def small_ss(small_params):
    return steady_state_at_prices(small_params)

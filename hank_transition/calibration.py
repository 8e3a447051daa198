"""
Calibration and parameter structure for the HANK transition solver.

Quarterly calibration in the spirit of McKay, Nakamura & Steinsson (2016):
three productivity states, only the most productive households pay taxes and
receive dividends, government debt worth 5.5 quarters of output.

All scalars live as module constants; `make_params` assembles them, together
with the asset grids, into a frozen `Params` read by the solver and the
household block.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

import numpy as np

from .errors import ParameterDomainError

# =============================================================================
# Calibration
# =============================================================================
BETA  = 0.986
GAMMA = 2.0           # CRRA
PSI   = 2.0           # inverse Frisch elasticity (also the wage-update exponent)
CHI   = 1.0           # weight on disutility of labour

THETA = 0.15          # Calvo reset probability
MU    = 1.2           # gross markup

B_DEBT = 5.5          # government debt / quarterly steady-state output
RBAR   = 1.005        # steady-state gross real rate

# Productivity process (P[z, z'], row-stochastic)
Z_GRID = (0.5, 1.0, 1.5)
PZ = ((0.966, 0.034, 0.000),
      (0.017, 0.966, 0.017),
      (0.000, 0.034, 0.966))
TAX_WEIGHTS = (0.0, 0.0, 1.0)

# =============================================================================
# Grids
# =============================================================================
NB = 40               # policy grid points
NK = 200              # distribution grid points
B_MIN = 0.0           # borrowing limit
B_MAX = 75.0
GRID_POWER = 2.0


def create_asset_grid(n_a: int, a_min: float, a_max: float, power: float = 2.0):
    """Power-spaced grid, dense near the borrowing limit."""
    x = np.linspace(0.0, 1.0, n_a) ** power
    a = a_min + (a_max - a_min) * x
    return a.astype(np.float64)


def stationary_z_distribution(P, tol=1e-14, max_iter=100000):
    """Ergodic distribution of a row-stochastic Markov matrix (power iteration)."""
    P = np.asarray(P, dtype=np.float64)
    g = np.ones(P.shape[0]) / P.shape[0]
    for _ in range(max_iter):
        g_new = g @ P
        g_new /= g_new.sum()
        if np.max(np.abs(g_new - g)) < tol:
            return g_new
        g = g_new
    return g


def _frozen(x):
    a = np.array(x, dtype=np.float64)
    a.setflags(write=False)
    return a


@dataclass(frozen=True, eq=False)
class Params:
    beta: float
    gamma: float
    psi: float
    chi: float
    theta: float
    mu: float
    B: float
    Rbar: float
    z_grid: np.ndarray
    Pz: np.ndarray
    Gamma: np.ndarray
    tax_weights: np.ndarray
    b_grid: np.ndarray
    k_grid: np.ndarray

    @property
    def nb(self) -> int:
        return len(self.b_grid)

    @property
    def nk(self) -> int:
        return len(self.k_grid)

    @property
    def nz(self) -> int:
        return len(self.z_grid)

    @property
    def weighted_productivity(self) -> float:
        """Tax base Gamma' * tax_weights."""
        return float(self.Gamma @ self.tax_weights)

    def with_overrides(self, **kwargs) -> "Params":
        """Return a copy with scalar fields replaced (arrays are frozen again)."""
        arrays = {k: _frozen(v) for k, v in kwargs.items() if isinstance(v, (list, tuple, np.ndarray))}
        scalars = {k: float(v) for k, v in kwargs.items() if k not in arrays}
        return replace(self, **scalars, **arrays)

    def validate(self) -> "Params":
        """Raise ParameterDomainError unless the model is well defined at these values."""
        if not 0.0 < self.theta < 1.0:
            raise ParameterDomainError(f"theta (Calvo reset probability) must lie in (0,1), got {self.theta}.")
        if not self.mu > 1.0:
            raise ParameterDomainError(f"mu (gross markup) must exceed 1, got {self.mu}.")
        if not 0.0 < self.beta < 1.0:
            raise ParameterDomainError(f"beta must lie in (0,1), got {self.beta}.")
        for nm in ("gamma", "psi", "chi", "Rbar"):
            if not getattr(self, nm) > 0.0:
                raise ParameterDomainError(f"{nm} must be positive, got {getattr(self, nm)}.")
        for nm in ("b_grid", "k_grid"):
            g = getattr(self, nm)
            if len(g) < 2 or np.any(np.diff(g) <= 0.0):
                raise ParameterDomainError(f"{nm} must be strictly increasing with at least 2 points.")
        if np.any(self.z_grid <= 0.0):
            raise ParameterDomainError("productivity levels must be positive.")
        if self.Pz.shape != (self.nz, self.nz) or np.any(self.Pz < 0.0) \
                or np.max(np.abs(self.Pz.sum(axis=1) - 1.0)) > 1e-10:
            raise ParameterDomainError("Pz must be a row-stochastic nz x nz matrix.")
        if len(self.tax_weights) != self.nz or self.weighted_productivity <= 0.0:
            raise ParameterDomainError("tax_weights must have nz entries with Gamma'tax_weights > 0.")
        return self


def make_params(
    *,
    beta=BETA, gamma=GAMMA, psi=PSI, chi=CHI,
    theta=THETA, mu=MU, B=B_DEBT, Rbar=RBAR,
    z_grid=Z_GRID, Pz=PZ, tax_weights=TAX_WEIGHTS,
    nb=NB, nk=NK, b_min=B_MIN, b_max=B_MAX, grid_power=GRID_POWER,
) -> Params:
    """Assemble a Params structure; keyword arguments override the module calibration."""
    Pz = np.asarray(Pz, dtype=np.float64)
    return Params(
        beta=float(beta), gamma=float(gamma), psi=float(psi), chi=float(chi),
        theta=float(theta), mu=float(mu), B=float(B), Rbar=float(Rbar),
        z_grid=_frozen(z_grid),
        Pz=_frozen(Pz),
        Gamma=_frozen(stationary_z_distribution(Pz)),
        tax_weights=_frozen(tax_weights),
        b_grid=_frozen(create_asset_grid(int(nb), b_min, b_max, grid_power)),
        k_grid=_frozen(create_asset_grid(int(nk), b_min, b_max, grid_power)),
    )

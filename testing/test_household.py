"""
Tests for the reference household block: EGM backward induction, policy
layout, lottery kernel and forward simulation. Run on small grids.
"""

import numpy as np
import pytest

from hank_transition.block import HouseholdBlock, MNSHousehold
from hank_transition.distribution import (aggregate_assets, check_mass, forward_dist, forwardmat,
                                          get_interp_weights)
from hank_transition.errors import DistributionError
from hank_transition.household import (backward_step, constrained_consumption, flatten_c,
                                       interp_extrap, labor_supply, reshape_c, solveback, transfers)
from hank_transition.simulate import simulate_forward
from hank_transition.steady_state import SteadyState, market_gaps

from conftest import LeakyHousehold


def _ss_policy(ss, p):
    return reshape_c(ss.c_policies, p)


# =============================================================================
# Layout helpers
# =============================================================================
def test_reshape_and_flatten_are_inverse(small_params):
    p = small_params
    col = np.arange(p.nb * p.nz, dtype=np.float64)
    c = reshape_c(col, p)
    assert c.shape == (p.nb, p.nz)
    # productivity-major: first nb entries belong to the lowest productivity
    np.testing.assert_array_equal(c[:, 0], col[:p.nb])
    np.testing.assert_array_equal(flatten_c(c), col)


def test_reshape_rejects_wrong_size(small_params):
    with pytest.raises(ValueError):
        reshape_c(np.ones(small_params.nb * small_params.nz + 1), small_params)


def test_transfers_follow_tax_weights(small_params):
    p = small_params
    tr = transfers(0.1, 0.2, p)
    tw = np.asarray(p.tax_weights)
    np.testing.assert_allclose(tr, 0.2 * tw / (p.Gamma @ tw) - 0.1 * tw)
    # aggregate transfer equals div - tau * tax base
    assert float(p.Gamma @ tr) == pytest.approx(0.2 - 0.1 * p.weighted_productivity)


# =============================================================================
# Numba kernels
# =============================================================================
def test_interp_extrap_is_exact_for_linear_functions():
    xp = np.array([0.0, 1.0, 3.0, 6.0])
    fp = 2.0 * xp - 1.0
    x = np.array([-1.0, 0.5, 2.0, 6.0, 8.0])
    np.testing.assert_allclose(interp_extrap(xp, fp, x), 2.0 * x - 1.0)


def test_interp_weights():
    grid = np.array([0.0, 1.0, 2.0, 4.0])
    assert get_interp_weights(-0.5, grid) == (0, 1, 1.0)
    assert get_interp_weights(5.0, grid) == (2, 3, 0.0)
    lo, hi, w_lo = get_interp_weights(3.0, grid)
    assert (lo, hi) == (2, 3)
    assert w_lo == pytest.approx(0.5)


def test_constrained_consumption_satisfies_budget(small_params):
    p = small_params
    wz = 0.8
    cash = np.array([-0.2, 0.0, 0.3, 2.0])
    c = constrained_consumption(cash, wz, p.gamma, p.psi, p.chi)
    l = labor_supply(c, wz, p)
    assert np.all(c > 0.0)
    np.testing.assert_allclose(c, cash + wz * l, rtol=1e-10, atol=1e-12)


# =============================================================================
# Backward induction
# =============================================================================
def test_stationary_policy_is_a_fixed_point(small_params, small_ss):
    p, ss = small_params, small_ss
    c = _ss_policy(ss, p)
    c_back = backward_step(c, ss.R, ss.w, ss.tau, ss.div, p.beta, p)
    np.testing.assert_allclose(c_back, c, atol=1e-7)


def test_policies_increase_in_assets(small_params, small_ss):
    c = _ss_policy(small_ss, small_params)
    assert np.all(np.diff(c, axis=0) > 0.0)


def test_solveback_at_constant_prices(small_params, small_ss):
    p, ss = small_params, small_ss
    T = 6
    panel = solveback(_ss_policy(ss, p), np.full(T, ss.w), np.full(T, ss.R),
                      np.full(T, ss.tau), np.full(T, ss.div), p.beta, p)
    assert panel.shape == (p.nb * p.nz, T)
    np.testing.assert_array_equal(panel[:, -1], ss.c_policies)
    for t in range(T):
        np.testing.assert_allclose(panel[:, t], ss.c_policies, atol=1e-6)


def test_rate_change_only_moves_earlier_policies(small_params, small_ss):
    p, ss = small_params, small_ss
    T = 5
    R = np.full(T, ss.R)
    R[2] -= 0.005
    panel = solveback(_ss_policy(ss, p), np.full(T, ss.w), R,
                      np.full(T, ss.tau), np.full(T, ss.div), p.beta, p)
    for t in (3, 4):
        np.testing.assert_allclose(panel[:, t], ss.c_policies, atol=1e-6)
    for t in (1, 2):
        assert np.max(np.abs(panel[:, t] - ss.c_policies)) > 1e-4


# =============================================================================
# Distribution
# =============================================================================
def test_kernel_is_row_stochastic(small_params, small_ss):
    p, ss = small_params, small_ss
    K = forwardmat(_ss_policy(ss, p), ss.R, ss.w, ss.tau, ss.div, p)
    assert K.shape == (p.nk * p.nz, p.nk * p.nz)
    np.testing.assert_allclose(np.asarray(K.sum(axis=1)).ravel(), 1.0, atol=1e-12)


def test_stationary_distribution_is_invariant(small_params, small_ss):
    p, ss = small_params, small_ss
    K = forwardmat(_ss_policy(ss, p), ss.R, ss.w, ss.tau, ss.div, p)
    D_next = forward_dist(ss.D, K)
    assert check_mass(D_next) == pytest.approx(1.0)
    np.testing.assert_allclose(D_next, ss.D, atol=1e-9)
    assert np.all(ss.D >= 0.0)
    # productivity marginal is the ergodic one
    np.testing.assert_allclose(ss.D.reshape(p.nz, p.nk).sum(axis=1), p.Gamma, atol=1e-9)
    assert aggregate_assets(ss.D, p) > 0.0


def test_forward_dist_dimension_mismatch(small_params, small_ss):
    p, ss = small_params, small_ss
    K = forwardmat(_ss_policy(ss, p), ss.R, ss.w, ss.tau, ss.div, p)
    with pytest.raises(ValueError):
        forward_dist(np.ones(p.nk * p.nz - 1), K)


def test_check_mass():
    assert check_mass(np.full(4, 0.25)) == pytest.approx(1.0)
    with pytest.raises(DistributionError) as exc_info:
        check_mass(np.full(4, 0.24), period=7)
    assert exc_info.value.period == 7
    assert exc_info.value.mass == pytest.approx(0.96)


def test_simulate_forward_at_steady_state(small_params, small_ss):
    p, ss = small_params, small_ss
    T = 6
    panel = np.tile(ss.c_policies[:, None], (1, T))
    fwd = simulate_forward(ss.D, panel, np.full(T, ss.R), np.full(T, ss.w),
                           np.full(T, ss.div), np.full(T, ss.tau), p)
    assert np.isnan(fwd.C[0]) and np.isnan(fwd.C[-1])
    np.testing.assert_allclose(fwd.C[1:-1], fwd.C[1], rtol=1e-7)
    np.testing.assert_allclose(fwd.A[1:-1], aggregate_assets(ss.D, p), rtol=1e-6)
    np.testing.assert_allclose(fwd.D.sum(axis=0), 1.0, atol=1e-10)


def test_simulate_forward_detects_mass_loss(toy_params, toy_ss):
    p = toy_params
    T = 6
    block = LeakyHousehold(p)
    panel = np.tile(toy_ss.c_policies[:, None], (1, T))
    with pytest.raises(DistributionError) as exc_info:
        simulate_forward(toy_ss.D, panel, np.full(T, p.Rbar), np.full(T, toy_ss.w),
                         np.full(T, toy_ss.div), np.full(T, toy_ss.tau), p, block=block)
    assert exc_info.value.period == 3


def test_block_interface():
    base = HouseholdBlock()
    with pytest.raises(NotImplementedError):
        base.forwardmat(None, 1.0, 1.0, 0.0, 0.0, None)
    assert isinstance(MNSHousehold(), HouseholdBlock)


def test_steady_state_roundtrip(tmp_path, small_ss):
    path = small_ss.save(str(tmp_path / "ss" / "steady_state.npz"))
    ss = SteadyState.load(path)
    for nm in ("w", "div", "Y", "R", "tau"):
        assert getattr(ss, nm) == getattr(small_ss, nm)
    np.testing.assert_array_equal(ss.c_policies, small_ss.c_policies)
    np.testing.assert_array_equal(ss.D, small_ss.D)


def test_market_gaps(toy_params, toy_ss, toy_block, small_params, small_ss):
    gap_C, gap_L = market_gaps(toy_ss, toy_params, block=toy_block)
    assert abs(gap_C) < 1e-12 and abs(gap_L) < 1e-12

    # household-stationary state at w=1/mu, Y=1 is not an equilibrium
    gap_C, gap_L = market_gaps(small_ss, small_params)
    assert max(abs(gap_C), abs(gap_L)) > 1e-3

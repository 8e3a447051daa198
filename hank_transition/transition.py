"""
Perfect-foresight transition path after a one-off, pre-announced change in the
real rate (McKay, Nakamura & Steinsson 2016 experiment).

Algorithm (nested fixed point):
  outer loop on the price-dispersion path S
    inner loop on the wage path w given S:
      backward induction      -> household policies for t = 1..T
      forward simulation      -> C (= Y), L, assets for t = 2..T-1
      labour demand           N_t = S_t * Y_t
      wage update             w_t <- w_t (N_t / L_t)^psi, relaxed 0.25 new / 0.75 old
      dividends               div_t = Y_t - w_t N_t
    pricing block (Calvo)     -> new S path from (w, Y)
Periods 1 and T are steady-state anchors and are never updated.

Run:
  hank-transition --T 50 --TR 10 --RChange -0.005 --ss steady_state.npz --out outputs
"""

from dataclasses import replace
from typing import NamedTuple
import warnings

import numpy as np

from .block import MNSHousehold
from .errors import (ConvergenceWarning, DistributionError, NonConvergenceError,
                     PricingDomainError, TransitionError)
from .paths import IterationState, Path, TransitionResult
from .pricing import solve_pricing
from .simulate import simulate_forward
from .steady_state import tax_rate

# =============================================================================
# Numerical controls
# =============================================================================
MAX_OUTER   = 100     # iterations on the price-dispersion path
MAX_W_INNER = 100     # wage iterations per S iteration (need not converge fully)
WAGE_RELAX  = 0.25    # weight on the new wage in the relaxed update
S_TOL = 1e-6
W_TOL = 1e-6

ON_NONCONVERGENCE = ("warn", "raise", "ignore")


class WageStep(NamedTuple):
    w: Path
    div: Path
    Y: np.ndarray
    L: np.ndarray
    A: np.ndarray
    distance: float


def _anchored(interior_source, anchor):
    v = np.array(interior_source, dtype=np.float64)
    v[0] = v[-1] = anchor
    return v


def wage_step(state, Rpath, tau, ss, p, block, c_terminal, relax=WAGE_RELAX):
    """One pass of the inner loop: new wage and dividend snapshots given state.S."""
    w = state.w.values
    div = state.div.values

    cpol_path = block.solveback(c_terminal, w, Rpath, tau, div, p.beta, p)
    fwd = simulate_forward(ss.D, cpol_path, Rpath, w, div, tau, p, block=block)

    # goods market: output equals consumption
    Y = _anchored(fwd.C, ss.Y)
    N = state.S.values * Y

    L_int = fwd.L[1:-1]
    bad = np.flatnonzero(~(L_int > 0.0))
    if bad.size:
        raise TransitionError(f"non-positive labour supply in period {int(bad[0]) + 2}: L={L_int[bad[0]]!r}")

    w_old = w[1:-1]
    w_new = w_old * (N[1:-1] / L_int) ** p.psi
    w_new = relax * w_new + (1.0 - relax) * w_old
    div_new = Y[1:-1] - w_new * N[1:-1]

    distance = float(np.max(np.abs(w_new / w_old - 1.0)))
    return WageStep(
        w=state.w.with_interior(w_new),
        div=state.div.with_interior(div_new),
        Y=Y,
        L=_anchored(fwd.L, np.nan),
        A=_anchored(fwd.A, np.nan),
        distance=distance,
    )


def solve_for_transition(Rpath, wguess, div_guess, Sguess, ss, p, block=None, *,
                         S_tol=S_TOL, w_tol=W_TOL,
                         max_outer=MAX_OUTER, max_inner=MAX_W_INNER, relax=WAGE_RELAX,
                         on_nonconvergence="warn", verbose=True):
    """
    Solve for the perfect-foresight transition path given the rate path Rpath,
    assuming the economy is back in steady state in the last period of Rpath.
    wguess, div_guess and Sguess are initial guesses of length T.

    First iterates on wages so that, given the current S path, labour supply
    matches labour demand S*Y (by Walras' law the asset market then clears as
    well); then recomputes S from the wage and output paths, which becomes the
    guess for the next outer iteration.

    The path counts as converged only when, in the same outer iteration, the
    wage loop met w_tol and the S update met S_tol. If the outer loop exhausts
    max_outer first, the best current estimate is returned with converged=False,
    status "max_iter" (S still moving) or "max_iter_inner" (S settled but the
    last wage loop hit max_inner), and a ConvergenceWarning
    (on_nonconvergence="warn"), returned silently ("ignore"), or a
    NonConvergenceError carrying it is raised ("raise").
    """
    if on_nonconvergence not in ON_NONCONVERGENCE:
        raise ValueError(f"on_nonconvergence must be one of {ON_NONCONVERGENCE}, got {on_nonconvergence!r}")
    if max_outer < 1 or max_inner < 1:
        raise ValueError("max_outer and max_inner must be at least 1")
    p.validate()
    if block is None:
        block = MNSHousehold()

    Rpath = np.asarray(Rpath, dtype=np.float64)
    T = len(Rpath)
    state = IterationState(w=Path(wguess), div=Path(div_guess), S=Path(Sguess))
    for nm in ("w", "div", "S"):
        if getattr(state, nm).T != T:
            raise ValueError(f"{nm} guess has {getattr(state, nm).T} periods, Rpath has {T}")

    tau = tax_rate(Rpath, ss.Y, p)
    c_terminal = block.reshape_c(ss.c_policies, p)

    w_hist, S_hist, inner_counts = [], [], []
    converged = inner_ok = False
    distS = np.inf
    step = Pi = None

    # =========================
    # Outer loop on S path
    # =========================
    for outer in range(max_outer):

        # Inner loop on wage path given S
        for inner in range(max_inner):
            try:
                step = wage_step(state, Rpath, tau, ss, p, block, c_terminal, relax=relax)
            except DistributionError as exc:
                raise DistributionError(f"{exc} [outer {outer + 1}, wage {inner + 1}]",
                                        period=exc.period, mass=exc.mass,
                                        outer=outer + 1, inner=inner + 1) from exc
            state = replace(state, w=step.w, div=step.div)
            w_hist.append(step.distance)
            if verbose and (inner < 2 or inner % 5 == 0 or step.distance <= w_tol):
                print(f"[outer {outer + 1:02d} | wage {inner + 1:02d}] max|Δw/w|={step.distance:.3e}")
            if step.distance <= w_tol:
                break
        inner_counts.append(inner + 1)
        inner_ok = step.distance <= w_tol

        # Pricing block: S implied by (w, Y)
        try:
            S_new, Pi, _ = solve_pricing(state.w.values, step.Y, ss, p)
        except PricingDomainError as exc:
            raise PricingDomainError(f"{exc} [outer {outer + 1}]", period=exc.period,
                                     outer=outer + 1) from exc
        S_old = state.S.interior
        distS = float(np.max(np.abs(S_new[1:-1] / S_old - 1.0)))
        state = replace(state, S=state.S.with_interior(S_new[1:-1]))
        S_hist.append(distS)

        if verbose:
            print(f"[outer {outer + 1:02d}] max|ΔS/S|={distS:.3e}\n")
        if distS <= S_tol and inner_ok:
            converged = True
            break

    result = TransitionResult(
        S=state.S.interior.copy(),
        w=state.w.interior.copy(),
        Pi=Pi[1:-1].copy(),
        Y=step.Y[1:-1].copy(),
        R=Rpath[1:-1].copy(),
        tau=np.asarray(tau)[1:-1].copy(),
        div=state.div.interior.copy(),
        L=step.L[1:-1].copy(),
        A=step.A[1:-1].copy(),
        converged=converged,
        status="converged" if converged else ("max_iter_inner" if distS <= S_tol else "max_iter"),
        outer_iterations=len(S_hist),
        inner_iterations=tuple(inner_counts),
        w_distances=tuple(w_hist),
        S_distances=tuple(S_hist),
    )

    if verbose and converged:
        print(f"CONVERGED after {len(S_hist)} outer iterations.\n")
    if not converged:
        if distS <= S_tol:
            msg = (f"transition path did not converge in {max_outer} outer iterations: "
                   f"the last wage loop stopped at max_inner={max_inner} "
                   f"(max|Δw/w|={w_hist[-1]:.3e}, tolerance {w_tol:g})")
        else:
            msg = (f"transition path did not converge in {max_outer} outer iterations "
                   f"(last max|ΔS/S|={S_hist[-1]:.3e}, tolerance {S_tol:g})")
        if on_nonconvergence == "raise":
            raise NonConvergenceError(msg, result=result)
        if on_nonconvergence == "warn":
            warnings.warn(msg, ConvergenceWarning, stacklevel=2)
    return result


def get_transition_full(TR, T, p, ss, RChange=-0.005, block=None, **kwargs):
    """
    Convenience wrapper: rate path equal to Rbar except for a single-quarter
    change of RChange, TR periods after the first transition period, and
    steady-state values as the initial guess for every path.
    The default RChange is the 50 basis point cut of the MNS experiment.
    """
    shock = TR + 1
    if not 0 < shock < T - 1:
        raise ValueError(f"shock period TR+2={TR + 2} must be an interior period of a horizon of T={T}")

    Rpath = np.full(T, p.Rbar)
    Rpath[shock] = p.Rbar + RChange

    wpath = np.full(T, ss.w)
    div_path = np.full(T, ss.div)
    Spath = np.ones(T)

    return solve_for_transition(Rpath, wpath, div_path, Spath, ss, p, block=block, **kwargs)

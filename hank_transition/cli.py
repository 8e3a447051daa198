"""
Command-line driver: solve the MNS rate-cut experiment and save the paths.

Run:
  hank-transition --T 50 --TR 10 --RChange -0.005 --ss steady_state.npz --out outputs

Tip (debug faster):
  hank-transition --T 30 --TR 5 --nb 30 --nk 120 --max-outer 5
"""

import argparse
import os
import warnings

import numpy as np

from .calibration import NB, NK, make_params
from .errors import ConvergenceWarning, NonConvergenceError
from .steady_state import MARKET_TOL, SteadyState, market_gaps, steady_state_at_prices
from .transition import MAX_OUTER, MAX_W_INNER, S_TOL, W_TOL, get_transition_full


def save_transition_path(result, ss, outdir, filename="transition_path.npz"):
    """Saves the interior transition paths plus steady-state levels for normalization."""
    os.makedirs(outdir, exist_ok=True)
    path = os.path.join(outdir, filename)
    np.savez_compressed(path,
                        t=np.arange(2, result.T),
                        S=result.S,
                        w=result.w,
                        Pi=result.Pi,
                        Y=result.Y,
                        R=result.R,
                        tau=result.tau,
                        div=result.div,
                        L=result.L,
                        A=result.A,
                        converged=result.converged,
                        outer_iterations=result.outer_iterations,
                        S_distances=np.array(result.S_distances),
                        w_distances=np.array(result.w_distances),
                        # steady-state levels
                        ss_w=ss.w,
                        ss_Y=ss.Y,
                        ss_div=ss.div,
                        ss_tau=ss.tau,
                        )
    print(f"Saved transition path results to: {path}")
    return path


def build_parser():
    parser = argparse.ArgumentParser(description="Perfect-foresight transition after a one-quarter rate change.")
    parser.add_argument("--T", type=int, default=50, help="Horizon length (steady state again in period T)")
    parser.add_argument("--TR", type=int, default=10, help="Quarters until the rate change")
    parser.add_argument("--RChange", type=float, default=-0.005, help="Change in R at the shock quarter")
    parser.add_argument("--ss", type=str, default=None, help="Steady state .npz (see SteadyState.save)")
    parser.add_argument("--nb", type=int, default=NB, help="Policy grid points")
    parser.add_argument("--nk", type=int, default=NK, help="Distribution grid points")
    parser.add_argument("--S-tol", dest="S_tol", type=float, default=S_TOL)
    parser.add_argument("--w-tol", dest="w_tol", type=float, default=W_TOL)
    parser.add_argument("--max-outer", dest="max_outer", type=int, default=MAX_OUTER)
    parser.add_argument("--max-inner", dest="max_inner", type=int, default=MAX_W_INNER)
    parser.add_argument("--strict", action="store_true", help="Fail instead of warning on non-convergence")
    parser.add_argument("--out", type=str, default="outputs_transition", help="Output directory")
    parser.add_argument("--quiet", action="store_true", help="Reduce prints")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    verbose = not args.quiet

    p = make_params(nb=args.nb, nk=args.nk).validate()

    if args.ss is not None:
        print(f"Loading steady state from {args.ss}")
        ss = SteadyState.load(args.ss)
        if len(ss.c_policies) != p.nb * p.nz or len(ss.D) != p.nk * p.nz:
            raise SystemExit(f"steady state in {args.ss} does not match grids nb={p.nb}, nk={p.nk}")
    else:
        print("No steady state given: building a household-stationary state at w=1/mu, Y=1")
        ss = steady_state_at_prices(p, verbose=verbose)
        ss.save(os.path.join(args.out, "steady_state.npz"))
        gap_C, gap_L = market_gaps(ss, p)
        if max(abs(gap_C), abs(gap_L)) > MARKET_TOL:
            msg = (f"built steady state does not clear markets (C-Y={gap_C:+.3e}, L-Y={gap_L:+.3e}); "
                   f"paths will drift away from the anchors even without a shock. Pass an equilibrium via --ss")
            if args.strict:
                raise SystemExit(msg)
            warnings.warn(msg, ConvergenceWarning, stacklevel=2)

    print(f"Transition: T={args.T}, rate change {args.RChange:+.4f} in period {args.TR + 2}")
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("always", ConvergenceWarning)
            tp = get_transition_full(args.TR, args.T, p, ss, RChange=args.RChange,
                                     S_tol=args.S_tol, w_tol=args.w_tol,
                                     max_outer=args.max_outer, max_inner=args.max_inner,
                                     on_nonconvergence="raise" if args.strict else "warn",
                                     verbose=verbose)
    except NonConvergenceError as exc:
        save_transition_path(exc.result, ss, args.out, filename="transition_path_unconverged.npz")
        raise SystemExit(str(exc))

    dev_Y = tp.Y / ss.Y - 1.0
    print(f"Peak output deviation {100 * dev_Y[np.argmax(np.abs(dev_Y))]:+.3f}% "
          f"in period {int(np.argmax(np.abs(dev_Y))) + 2}; status={tp.status}")
    save_transition_path(tp, ss, args.out)


if __name__ == "__main__":
    main()

"""
Calvo pricing block: reset prices, inflation and price dispersion.

Backward in time, the present-value numerator/denominator of the optimal
reset price are accumulated from their steady-state values,

    pbarA_t = mu * w_{t+1} * Y_t + beta(1-theta) * Pi_{t+1}^(mu/(mu-1)) * pbarA_{t+1}
    pbarB_t =          Y_t       + beta(1-theta) * Pi_{t+1}^(1/(mu-1))  * pbarB_{t+1}
    p*_t    = pbarA_t / pbarB_t
    Pi_t    = ((1-theta) / (1 - theta * p*_t^(1/(1-mu))))^(1-mu)

and forward in time, from S = 1 in the initial steady state,

    S_t = (1-theta) * S_{t-1} * Pi_t^(mu/(mu-1)) + theta * p*_t^(mu/(1-mu)).

Periods 1 and T stay at their steady-state values (Pi = p* = S = 1).
"""

import numpy as np

from .errors import PricingDomainError


def _pow(base, expo, period, name):
    # period is 1-based
    # fractional powers are only defined for a strictly positive base
    if not base > 0.0:
        raise PricingDomainError(
            f"{name} = {base!r} is not strictly positive in period {period}; "
            f"cannot raise it to the power {expo:.6g}",
            period=period,
        )
    return base ** expo


def reset_price_recursion(wpath, Ypath, w_ss, Y_ss, p):
    """Backward pass. Returns (pstar, Pi), both of length T."""
    p.validate()
    T = len(wpath)
    beta, theta, mu = p.beta, p.theta, p.mu
    disc = beta * (1.0 - theta)

    pbarA = mu * w_ss * Y_ss / (1.0 - disc)
    pbarB = Y_ss / (1.0 - disc)

    pstar = np.ones(T)
    Pi = np.ones(T)
    for t in range(T - 2, 0, -1):
        pbarA = mu * wpath[t + 1] * Ypath[t] + disc * _pow(Pi[t + 1], mu / (mu - 1.0), t + 1, "Pi") * pbarA
        pbarB = Ypath[t] + disc * _pow(Pi[t + 1], 1.0 / (mu - 1.0), t + 1, "Pi") * pbarB
        pstar[t] = pbarA / pbarB
        base = 1.0 - theta * _pow(pstar[t], 1.0 / (1.0 - mu), t + 1, "pstar")
        Pi[t] = _pow((1.0 - theta) / base if base > 0.0 else base, 1.0 - mu, t + 1, "reset-price term")
    return pstar, Pi


def price_dispersion(pstar, Pi, p, S_init=1.0):
    """Forward pass for S given reset prices and inflation."""
    theta, mu = p.theta, p.mu
    T = len(Pi)
    S = np.ones(T)
    S_last = S_init
    for t in range(1, T - 1):
        S[t] = (1.0 - theta) * S_last * _pow(Pi[t], mu / (mu - 1.0), t + 1, "Pi") \
            + theta * _pow(pstar[t], mu / (1.0 - mu), t + 1, "pstar")
        S_last = S[t]
    return S


def solve_pricing(wpath, Ypath, ss, p):
    """Price dispersion and inflation implied by wage and output paths: (S, Pi, pstar)."""
    pstar, Pi = reset_price_recursion(np.asarray(wpath), np.asarray(Ypath), ss.w, ss.Y, p)
    S = price_dispersion(pstar, Pi, p)
    return S, Pi, pstar

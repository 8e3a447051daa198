"""
Household block interface used by the transition solver.

The solver only talks to the household side through four calls:

    reshape_c(col, p)                                  -> structured policy
    solveback(c_terminal, w, R, tau, div, beta, p)     -> policy panel (states x T)
    aggregate_C_L(D, c_pol, R, w, tau, div, p)         -> (C, L)
    forwardmat(c_pol, R, w, tau, div, p)               -> sparse kernel (rows = today)

`MNSHousehold` is the reference implementation (EGM backward induction,
lottery kernel on k_grid). Anything providing the same methods can be passed
to `solve_for_transition` instead.
"""

from . import distribution, household


class HouseholdBlock:

    def reshape_c(self, col, p):
        raise NotImplementedError

    def solveback(self, c_terminal, wpath, Rpath, tau_path, div_path, beta, p):
        raise NotImplementedError

    def aggregate_C_L(self, D, c_pol, R, w, tau, div, p):
        raise NotImplementedError

    def forwardmat(self, c_pol, R, w, tau, div, p):
        raise NotImplementedError


class MNSHousehold(HouseholdBlock):

    def reshape_c(self, col, p):
        return household.reshape_c(col, p)

    def solveback(self, c_terminal, wpath, Rpath, tau_path, div_path, beta, p):
        return household.solveback(c_terminal, wpath, Rpath, tau_path, div_path, beta, p)

    def aggregate_C_L(self, D, c_pol, R, w, tau, div, p):
        return distribution.aggregate_C_L(D, c_pol, R, w, tau, div, p)

    def forwardmat(self, c_pol, R, w, tau, div, p):
        return distribution.forwardmat(c_pol, R, w, tau, div, p)

"""
Exceptions and warnings raised by the transition solver.
"""


class TransitionError(Exception):
    """Base class for failures of the transition-path computation."""


class ParameterDomainError(TransitionError, ValueError):
    """Parameters outside the region where the model is defined (e.g. theta >= 1, mu <= 1)."""


class PricingDomainError(TransitionError, ArithmeticError):
    """Non-positive base under a fractional power in the reset-price recursion."""

    def __init__(self, message, period=None, outer=None):
        super().__init__(message)
        self.period = period
        self.outer = outer


class DistributionError(TransitionError):
    """Propagated wealth distribution no longer sums to one."""

    def __init__(self, message, period=None, mass=None, outer=None, inner=None):
        super().__init__(message)
        self.period = period
        self.mass = mass
        self.outer = outer
        self.inner = inner


class NonConvergenceError(TransitionError):
    """Outer loop hit its iteration cap; `result` holds the best current estimate."""

    def __init__(self, message, result=None):
        super().__init__(message)
        self.result = result


class ConvergenceWarning(RuntimeWarning):
    pass

"""
Perfect-foresight transition paths for a heterogeneous-agent New Keynesian
economy with Calvo pricing (McKay, Nakamura & Steinsson 2016 experiment).
"""

from .block import HouseholdBlock, MNSHousehold
from .calibration import Params, make_params
from .errors import (ConvergenceWarning, DistributionError, NonConvergenceError,
                     ParameterDomainError, PricingDomainError, TransitionError)
from .paths import Path, TransitionResult
from .pricing import solve_pricing
from .simulate import simulate_forward
from .steady_state import SteadyState, market_gaps, steady_state_at_prices, tax_rate
from .transition import get_transition_full, solve_for_transition

__version__ = "0.1.0"

"""
moeprimer -- margins of error in survey estimates, for maps and regressions.

Each sub-module covers one step of the primer using numpy / scipy for the
numerics and geopandas / matplotlib / reportlab for the document.
"""

from .utils import (
    InvalidInput, SamplingStalled, SingularFit, UncertaintyError, add_const, ols_fit,
)
from .moe import Z90, Z95, Z99
from .sampler import bounded_normal
from .envelope import RegressionLine, simulate_envelope
from . import moe
from . import sampler
from . import regression
from . import envelope

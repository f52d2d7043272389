"""State Space Model implementations."""
from .linear_gaussian import LinearGaussian
from .range_bearing import RangeBearing
from .van_der_pol import VanDerPol

__all__ = [
    'LinearGaussian',
    'RangeBearing',
    'VanDerPol',
]

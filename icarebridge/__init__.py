"""
icarebridge - run iCARE absolute risk models in an embedded Python interpreter.
"""

__version__ = "0.1.0"

from icarebridge.facade import ICare, OperationFacade
from icarebridge.loader import load_icare
from icarebridge.params import AbsoluteRiskParameters, SplitIntervalParameters, ValidationParameters

__all__ = [
    "AbsoluteRiskParameters",
    "ICare",
    "OperationFacade",
    "SplitIntervalParameters",
    "ValidationParameters",
    "__version__",
    "load_icare",
]

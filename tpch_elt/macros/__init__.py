"""
Model Macros
"""
from .keys import surrogate_key
from .pricing import discounted_amount

__all__ = [
    "discounted_amount",
    "surrogate_key",
]

"""
activations.py
~~~~~~~~~~~~~~

Scalar activation functions applied elementwise with Matrix.map.
"""

import math


def sigmoid(x: float) -> float:
    """
    The logistic function 1 / (1 + e^-x).

    Args:
        x: Input value

    Returns:
        float: Value in the closed interval [0, 1]
    """
    try:
        return 1.0 / (1.0 + math.exp(-x))
    except OverflowError:
        # e^-x is +inf for a double here, and 1 / (1 + inf) is 0
        return 0.0

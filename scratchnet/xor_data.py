"""
xor_data.py
~~~~~~~~~~~

The XOR truth table as training data for a 2-input network.

Targets are one-hot over [true, false]: index 0 is high when XOR is true
and index 1 is high when it is false.
"""

from typing import List, Tuple

from scratchnet.matrix import Matrix

XOR_LABELS = ['T T', 'T F', 'F T', 'F F']

XOR_INPUTS = [
    [1.0, 1.0],
    [1.0, 0.0],
    [0.0, 1.0],
    [0.0, 0.0],
]

XOR_TARGETS = [
    [0.0, 1.0],
    [1.0, 0.0],
    [1.0, 0.0],
    [0.0, 1.0],
]

# Starting weights for the demo. Training with learning rate 0.1 separates
# all four rows within a few thousand epochs from here.
INITIAL_WEIGHT_LITERALS = [
    '[[-0.7, 0.0], [0.9, 0.3]]',
    '[[-0.7, 0.5], [0.8, -0.2]]',
]


def load_xor_data() -> List[Tuple[List[float], List[float]]]:
    """
    Return the XOR dataset as (inputs, targets) pairs.

    Each call builds new lists, so callers may modify the result freely.
    """
    return [
        (list(inputs), list(targets))
        for inputs, targets in zip(XOR_INPUTS, XOR_TARGETS)
    ]


def initial_xor_weights() -> List[Matrix]:
    """Return new copies of the demo's fixed starting weight matrices."""
    return [Matrix.from_literal(text) for text in INITIAL_WEIGHT_LITERALS]


def expected_class(targets: List[float]) -> int:
    """Index of the high target coordinate."""
    return targets.index(max(targets))

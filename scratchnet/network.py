"""
network.py
~~~~~~~~~~

A small feed-forward neural network trained one example at a time by
manual backpropagation.

Every layer is a square ``num_inputs x num_inputs`` weight matrix with no
bias, followed by an elementwise sigmoid, so every activation vector
(including the output) has ``num_inputs`` elements.

Errors are propagated backwards through the same weight matrix used in the
forward pass, not its transpose. With square layers of equal width the
shapes line up either way; the untransposed form is what the reference
values in the test suite are computed with, so keep it.
"""

import logging
import math
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from scratchnet.activations import sigmoid
from scratchnet.matrix import Matrix

logger = logging.getLogger(__name__)

# Ordered (inputs, targets) pairs, each of length num_inputs
TrainingData = Sequence[Tuple[Sequence[float], Sequence[float]]]


class NeuralNetwork:
    """
    Fixed-topology network of ``num_layers`` square sigmoid layers.

    Weights are empty until populated by ``randomize_weights`` or
    ``set_weights``.
    """

    def __init__(
        self,
        num_inputs: int,
        num_layers: int,
        rng: Optional[np.random.Generator] = None
    ):
        """
        Args:
            num_inputs: Width of every layer, including input and output
            num_layers: Number of weight matrices
            rng: Random generator used by ``randomize_weights`` when none is
                passed to it directly
        """
        self.num_inputs = num_inputs
        self.num_layers = num_layers
        self.rng = rng
        self.weights: List[Matrix] = []

    def __repr__(self) -> str:
        return (
            f"<NeuralNetwork num_inputs={self.num_inputs}, "
            f"num_layers={self.num_layers}>"
        )

    def get_weights(self) -> List[Matrix]:
        """Return copies of the current weight matrices, first layer first."""
        return [weight.copy() for weight in self.weights]

    def set_weights(self, new_weights: Sequence[Matrix]) -> None:
        """
        Replace all weights with copies of ``new_weights``.

        Shapes are not validated; every matrix should be
        ``num_inputs x num_inputs``.

        Raises:
            ValueError: If the number of matrices is not ``num_layers``
        """
        if len(new_weights) != self.num_layers:
            raise ValueError(
                f"Expected {self.num_layers} weight matrices, "
                f"got {len(new_weights)}"
            )
        self.weights = [weight.copy() for weight in new_weights]

    def randomize_weights(self, rng: Optional[np.random.Generator] = None) -> None:
        """
        Replace all weights with values drawn uniformly from
        ``[-1/sqrt(num_inputs), 1/sqrt(num_inputs)]``.

        Args:
            rng: Generator to draw from. Falls back to the one given to the
                constructor, then to a freshly seeded default generator.
        """
        if rng is None:
            rng = self.rng if self.rng is not None else np.random.default_rng()

        size = self.num_inputs
        bound = 1.0 / math.sqrt(size)

        self.weights = []
        for _ in range(self.num_layers):
            values = rng.uniform(-bound, bound, size * size)
            self.weights.append(Matrix.from_values(values.tolist(), size, size))

        logger.debug(
            f"Randomized {self.num_layers} layer(s) of {size}x{size} weights "
            f"within +/-{bound:.6f}"
        )

    def get_outputs(self, inputs: Sequence[float]) -> List[Matrix]:
        """
        Forward pass.

        Args:
            inputs: Input vector of length ``num_inputs``

        Returns:
            list: ``num_layers + 1`` column vectors. Entry 0 is the input
            itself; entry ``i + 1`` is the activation of layer ``i``.
        """
        activation = Matrix.from_values(inputs, self.num_inputs, 1)
        outputs = [activation.copy()]

        for layer in range(self.num_layers):
            activation = self.weights[layer].dot_prod(activation)
            activation.map(sigmoid)
            outputs.append(activation.copy())

        return outputs

    def get_errors(
        self,
        inputs: Sequence[float],
        targets: Sequence[float]
    ) -> List[Matrix]:
        """
        Backward pass.

        The output error is ``targets - output``; each earlier error is the
        next one multiplied by that layer's weight matrix.

        Returns:
            list: ``num_layers + 1`` column vectors aligned index for index
            with ``get_outputs``
        """
        outputs = self.get_outputs(inputs)
        rows, cols = outputs[0].size()
        target = Matrix.from_values(targets, rows, cols)

        errors = [target.subtract(outputs[-1])]
        for weight in reversed(self.weights):
            errors.append(weight.dot_prod(errors[-1]))

        errors.reverse()
        return errors

    def get_deltas(
        self,
        inputs: Sequence[float],
        targets: Sequence[float],
        learning_rate: float
    ) -> List[Matrix]:
        """
        Compute the additive weight update for every layer.

        Entry (j, k) of a layer's delta is
        ``learning_rate * err[j] * out[j] * (1 - out[j]) * prev[k]``, i.e.
        the sigmoid-derivative-weighted outer product of that layer's error
        and the previous layer's activation.

        Returns:
            list: One ``num_inputs x num_inputs`` matrix per layer
        """
        outputs = self.get_outputs(inputs)
        errors = self.get_errors(inputs, targets)

        deltas = []
        for layer in range(self.num_layers):
            error = errors[layer + 1].as_flat_sequence()
            prev_output = outputs[layer].as_flat_sequence()
            output = outputs[layer + 1].as_flat_sequence()

            values = []
            for j in range(len(error)):
                for k in range(len(output)):
                    values.append(
                        learning_rate * error[j] * output[j]
                        * (1.0 - output[j]) * prev_output[k]
                    )
            deltas.append(
                Matrix.from_values(values, self.num_inputs, self.num_inputs)
            )

        return deltas

    def train(
        self,
        data: TrainingData,
        learning_rate: float,
        epochs: int,
        callback: Optional[Callable[[Dict[str, Any]], None]] = None,
        yield_func: Optional[Callable[[], None]] = None
    ) -> None:
        """
        Train online: every example updates the weights immediately.

        Examples are visited in the given order once per epoch, with no
        shuffling and no early stopping.

        Args:
            data: Sequence of (inputs, targets) pairs
            learning_rate: Scale applied to every delta
            epochs: Number of full passes over ``data``
            callback: Called after each epoch with a dict holding ``epoch``
                (1-based), ``total_epochs``, ``elapsed_time`` and ``error``,
                the summed squared output error over ``data``
            yield_func: Called after each epoch, e.g. to let a cooperative
                server handle other requests
        """
        logger.debug(
            f"Training for {epochs} epoch(s) on {len(data)} example(s), "
            f"learning_rate={learning_rate}"
        )
        start_time = time.time()

        for epoch in range(epochs):
            for inputs, targets in data:
                deltas = self.get_deltas(inputs, targets, learning_rate)
                for layer in range(self.num_layers):
                    self.weights[layer] = self.weights[layer].add(deltas[layer])

            if callback is not None:
                callback({
                    'epoch': epoch + 1,
                    'total_epochs': epochs,
                    'elapsed_time': time.time() - start_time,
                    'error': self.total_error(data)
                })

            if yield_func is not None:
                yield_func()

        logger.debug(
            f"Training finished in {time.time() - start_time:.2f}s"
        )

    def total_error(self, data: TrainingData) -> float:
        """Sum of squared output errors over ``data``."""
        total = 0.0
        for inputs, targets in data:
            output = self.execute(inputs).as_flat_sequence()
            total += sum((t - o) ** 2 for t, o in zip(targets, output))
        return total

    def execute(self, inputs: Sequence[float]) -> Matrix:
        """Return the final activation for ``inputs`` without training."""
        return self.get_outputs(inputs)[-1]

    def predict(self, inputs: Sequence[float]) -> int:
        """Return the index of the largest output coordinate."""
        return int(np.argmax(self.execute(inputs).as_flat_sequence()))

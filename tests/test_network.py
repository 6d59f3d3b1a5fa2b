"""
test_network.py
~~~~~~~~~~~~~~~

Unit and integration tests for the backpropagation network.
"""

import math
import os
import sys

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from scratchnet.exceptions import DimensionMismatch
from scratchnet.matrix import Matrix
from scratchnet.network import NeuralNetwork
from scratchnet.xor_data import expected_class, initial_xor_weights, load_xor_data

GOLDEN_INPUTS = [1.0, 1.0]
GOLDEN_TARGETS = [0.0, 1.0]


@pytest.fixture
def golden_weights():
    """The two 2x2 weight matrices used for the reference values."""
    return [
        Matrix.from_values([1.0, 0.75, 0.5, 0.25], 2, 2),
        Matrix.from_values([0.25, 0.5, 0.75, 1.0], 2, 2),
    ]


@pytest.fixture
def golden_network(golden_weights):
    """A 2-input, 2-layer network with the reference weights."""
    nn = NeuralNetwork(2, 2)
    nn.set_weights(golden_weights)
    return nn


def rendered(matrices, decimal_places=10):
    return [m.to_canonical_string(decimal_places) for m in matrices]


@pytest.mark.unit
class TestWeights:
    """Test setting, copying and randomizing weights."""

    def test_set_weights(self, golden_network):
        """Test that weights are stored layer by layer."""
        assert rendered(golden_network.get_weights(), 2) == [
            "[[1.00,0.75],[0.50,0.25]]",
            "[[0.25,0.50],[0.75,1.00]]",
        ]

    def test_set_weights_deep_copies(self, golden_weights):
        """Test that the caller's matrices are not shared with the network."""
        nn = NeuralNetwork(2, 2)
        nn.set_weights(golden_weights)
        golden_weights[0].set(0, 0, 42.0)

        assert nn.get_weights()[0].get(0, 0) == 1.0

    def test_get_weights_returns_copies(self, golden_network):
        """Test that mutating returned weights leaves the network intact."""
        golden_network.get_weights()[1].set(1, 1, -5.0)
        assert golden_network.get_weights()[1].get(1, 1) == 1.0

    def test_set_weights_replaces_previous(self, golden_network, golden_weights):
        """Test that set_weights overwrites the whole sequence."""
        golden_network.set_weights(list(reversed(golden_weights)))
        assert rendered(golden_network.get_weights(), 2)[0] == "[[0.25,0.50],[0.75,1.00]]"
        assert len(golden_network.weights) == 2

    def test_set_weights_wrong_count(self, golden_weights):
        """Test that the number of matrices must match num_layers."""
        nn = NeuralNetwork(2, 3)
        with pytest.raises(ValueError):
            nn.set_weights(golden_weights)

    def test_randomize_weights_within_bound(self):
        """Test the +/- 1/sqrt(num_inputs) bound for num_inputs=2."""
        bound = 0.70710678118654752440
        nn = NeuralNetwork(2, 3, rng=np.random.default_rng(123))
        nn.randomize_weights()

        assert len(nn.weights) == 3
        for weights in nn.get_weights():
            assert weights.size() == (2, 2)
            for row in range(2):
                for col in range(2):
                    assert -bound <= weights.get(row, col) <= bound

    def test_randomize_weights_bound_scales_with_width(self):
        """Test the bound for a wider network."""
        nn = NeuralNetwork(9, 2, rng=np.random.default_rng(5))
        nn.randomize_weights()
        values = [v for w in nn.weights for v in w.as_flat_sequence()]
        assert len(values) == 2 * 81
        assert max(abs(v) for v in values) <= 1.0 / 3.0

    def test_randomize_weights_discards_previous(self, golden_network):
        """Test that randomizing twice still leaves num_layers matrices."""
        golden_network.randomize_weights(np.random.default_rng(0))
        golden_network.randomize_weights(np.random.default_rng(1))
        assert len(golden_network.weights) == golden_network.num_layers

    def test_randomize_weights_reproducible_with_seed(self):
        """Test that a seeded generator gives repeatable weights."""
        first = NeuralNetwork(3, 2)
        second = NeuralNetwork(3, 2)
        first.randomize_weights(np.random.default_rng(7))
        second.randomize_weights(np.random.default_rng(7))
        assert first.get_weights() == second.get_weights()

    def test_randomize_weights_without_generator(self):
        """Test the default generator path."""
        nn = NeuralNetwork(4, 1)
        nn.randomize_weights()
        assert all(abs(v) <= 0.5 for v in nn.weights[0].as_flat_sequence())


@pytest.mark.unit
class TestForwardBackward:
    """Test outputs, errors and deltas against reference values."""

    def test_get_outputs_for_one_layer(self, golden_weights):
        """Test the forward pass through a single layer."""
        nn = NeuralNetwork(2, 1)
        nn.set_weights(golden_weights[:1])

        outputs = nn.get_outputs(GOLDEN_INPUTS)
        assert len(outputs) == 2
        assert rendered(outputs) == [
            "[[1.0000000000],[1.0000000000]]",
            "[[0.8519528020],[0.6791786992]]",
        ]

    def test_get_outputs_for_more_than_one_layer(self, golden_network):
        """Test the forward pass through two layers."""
        outputs = golden_network.get_outputs(GOLDEN_INPUTS)
        assert len(outputs) == 3
        assert rendered(outputs) == [
            "[[1.0000000000],[1.0000000000]]",
            "[[0.8519528020],[0.6791786992]]",
            "[[0.6347333953],[0.7888726343]]",
        ]

    def test_first_output_is_input_column(self, golden_network):
        """Test that entry 0 is the unchanged input reshaped to a column."""
        inputs = [0.3, -1.5]
        first = golden_network.get_outputs(inputs)[0]
        assert first.size() == (2, 1)
        assert first.as_flat_sequence() == inputs

    def test_get_errors(self, golden_network):
        """Test backpropagated errors through the untransposed weights."""
        errors = golden_network.get_errors(GOLDEN_INPUTS, GOLDEN_TARGETS)
        assert len(errors) == 3
        assert rendered(errors) == [
            "[[-0.2518116765],[-0.0927905032]]",
            "[[-0.0531196660],[-0.2649226808]]",
            "[[-0.6347333953],[0.2111273657]]",
        ]

    def test_get_errors_uses_forward_weights_not_transpose(self, golden_network):
        """Test the propagation rule e_i = W_i . e_(i+1)."""
        weights = golden_network.get_weights()
        errors = golden_network.get_errors(GOLDEN_INPUTS, GOLDEN_TARGETS)

        assert errors[1] == weights[1].dot_prod(errors[2])
        assert errors[1] != weights[1].transpose().dot_prod(errors[2])

    def test_get_deltas(self, golden_network):
        """Test the learning-rate-scaled updates for both layers."""
        deltas = golden_network.get_deltas(GOLDEN_INPUTS, GOLDEN_TARGETS, 0.1)
        assert len(deltas) == 2
        assert rendered(deltas) == [
            "[[-0.0006699942,-0.0006699942],[-0.0057725326,-0.0057725326]]",
            "[[-0.0125374207,-0.0099948601],[0.0029957908,0.0023882512]]",
        ]

    def test_deltas_match_weight_shapes(self):
        """Test that every delta is num_inputs x num_inputs."""
        nn = NeuralNetwork(3, 4, rng=np.random.default_rng(2))
        nn.randomize_weights()
        deltas = nn.get_deltas([0.1, 0.2, 0.3], [1.0, 0.0, 0.0], 0.5)
        assert [d.size() for d in deltas] == [(3, 3)] * 4

    def test_execute_returns_final_activation(self, golden_network):
        """Test that execute is the last forward-pass entry."""
        output = golden_network.execute(GOLDEN_INPUTS)
        assert output == golden_network.get_outputs(GOLDEN_INPUTS)[-1]
        assert golden_network.predict(GOLDEN_INPUTS) == 1

    def test_execute_does_not_mutate(self, golden_network):
        """Test that inference leaves the weights alone."""
        before = golden_network.get_weights()
        golden_network.execute([0.5, -0.5])
        assert golden_network.get_weights() == before

    def test_shape_mismatch_propagates(self):
        """Test that badly shaped weights surface the Matrix error."""
        nn = NeuralNetwork(2, 1)
        nn.set_weights([Matrix.zeros(3, 3)])
        with pytest.raises(DimensionMismatch):
            nn.get_outputs([1.0, 1.0])

    def test_target_length_mismatch_propagates(self, golden_network):
        """Test that targets of the wrong length fail in subtract."""
        with pytest.raises(DimensionMismatch):
            golden_network.get_errors(GOLDEN_INPUTS, [0.0, 1.0, 0.0])


@pytest.mark.unit
class TestTraining:
    """Test the online training loop."""

    def test_single_step_adds_deltas(self, golden_network):
        """Test that one example for one epoch adds its deltas."""
        before = golden_network.get_weights()
        deltas = golden_network.get_deltas(GOLDEN_INPUTS, GOLDEN_TARGETS, 0.1)

        golden_network.train([(GOLDEN_INPUTS, GOLDEN_TARGETS)], 0.1, 1)

        expected = [w.add(d) for w, d in zip(before, deltas)]
        assert golden_network.get_weights() == expected

    def test_examples_visited_in_order(self, golden_weights):
        """Test that training matches manual in-order updates."""
        data = load_xor_data()
        manual = NeuralNetwork(2, 2)
        manual.set_weights(golden_weights)
        for _ in range(2):
            for inputs, targets in data:
                deltas = manual.get_deltas(inputs, targets, 0.1)
                manual.set_weights([w.add(d) for w, d in zip(manual.weights, deltas)])

        trained = NeuralNetwork(2, 2)
        trained.set_weights(golden_weights)
        trained.train(data, 0.1, 2)

        assert trained.get_weights() == manual.get_weights()

    def test_zero_epochs_is_a_no_op(self, golden_network):
        """Test that no epochs means no updates."""
        before = golden_network.get_weights()
        golden_network.train(load_xor_data(), 0.1, 0)
        assert golden_network.get_weights() == before

    def test_training_reduces_error(self, golden_network):
        """Test that the update direction lowers squared error."""
        data = [(GOLDEN_INPUTS, GOLDEN_TARGETS)]
        before = golden_network.total_error(data)
        golden_network.train(data, 0.1, 50)
        assert golden_network.total_error(data) < before

    def test_callback_and_yield_func(self, golden_network):
        """Test the per-epoch hooks."""
        updates = []
        yields = []
        data = load_xor_data()

        golden_network.train(
            data, 0.1, 3,
            callback=updates.append,
            yield_func=lambda: yields.append(True)
        )

        assert [u['epoch'] for u in updates] == [1, 2, 3]
        assert all(u['total_epochs'] == 3 for u in updates)
        assert all(u['elapsed_time'] >= 0 for u in updates)
        assert updates[-1]['error'] == pytest.approx(golden_network.total_error(data))
        assert len(yields) == 3

    def test_hooks_do_not_change_updates(self, golden_weights):
        """Test that callbacks leave the weight trajectory unchanged."""
        plain = NeuralNetwork(2, 2)
        plain.set_weights(golden_weights)
        plain.train(load_xor_data(), 0.1, 3)

        hooked = NeuralNetwork(2, 2)
        hooked.set_weights(golden_weights)
        hooked.train(load_xor_data(), 0.1, 3, callback=lambda _: None,
                     yield_func=lambda: None)

        assert plain.get_weights() == hooked.get_weights()

    def test_total_error(self, golden_network):
        """Test the summed squared error on the reference example."""
        output = golden_network.execute(GOLDEN_INPUTS).as_flat_sequence()
        expected = (0.0 - output[0]) ** 2 + (1.0 - output[1]) ** 2
        error = golden_network.total_error([(GOLDEN_INPUTS, GOLDEN_TARGETS)])
        assert math.isclose(error, expected)


@pytest.mark.integration
@pytest.mark.slow
class TestXorIntegration:
    """End-to-end training on the XOR truth table."""

    def test_learns_xor(self):
        """Test that every XOR row is classified correctly after training."""
        nn = NeuralNetwork(2, 2)
        nn.set_weights(initial_xor_weights())
        data = load_xor_data()

        nn.train(data, 0.1, 5000)

        for inputs, targets in data:
            output = nn.execute(inputs).as_flat_sequence()
            assert int(np.argmax(output)) == expected_class(targets)
            assert nn.predict(inputs) == expected_class(targets)

#!/usr/bin/env python3
"""
Text menu for running the scratchnet examples.

Usage:
    scratchnet                      # interactive menu
    scratchnet --choice 1           # run the XOR demo and exit
    scratchnet --choice 1 --epochs 20000
    scratchnet --choice 3 --seed 42

Examples:
    1. Learn the XOR gate from fixed starting weights
    2. Walk through one forward/backward pass with known weights
    3. Print a randomly initialised network
"""

import argparse
import logging
import os
import sys
from typing import Callable, Dict, List, Optional, TextIO, Tuple

import numpy as np

from scratchnet.exceptions import MatrixError
from scratchnet.matrix import Matrix
from scratchnet.network import NeuralNetwork
from scratchnet.xor_data import (
    XOR_LABELS,
    expected_class,
    initial_xor_weights,
    load_xor_data
)

logger = logging.getLogger(__name__)

DEFAULT_EPOCHS = 5000
LEARNING_RATE = 0.1


def configure_logging() -> None:
    """Set the log level from the LOG_LEVEL environment variable."""
    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


# ============================================================================
# EXAMPLES
# ============================================================================

def xor_example(args: argparse.Namespace, out: TextIO) -> None:
    """Train a 2x2 network on XOR and report its predictions."""
    print("Example: Learning the XOR Gate using a Neural Network", file=out)

    num_inputs = 2
    num_layers = 2
    nn = NeuralNetwork(num_inputs, num_layers)
    nn.set_weights(initial_xor_weights())

    for i, weight in enumerate(nn.get_weights()):
        print(
            f"Initial weights for layer {i}: {weight.to_canonical_string(1)}",
            file=out
        )

    data = load_xor_data()
    logger.info(
        f"Training XOR network for {args.epochs} epochs "
        f"(learning_rate={LEARNING_RATE})"
    )
    nn.train(data, LEARNING_RATE, args.epochs)

    for i, weight in enumerate(nn.get_weights()):
        print(
            f"Final weights for layer {i}: {weight.to_canonical_string(5)}",
            file=out
        )

    print("\nEvaluating model using final weights:", file=out)
    correct = 0
    for label, (inputs, targets) in zip(XOR_LABELS, data):
        output = nn.execute(inputs)
        predicted = nn.predict(inputs)
        ok = predicted == expected_class(targets)
        correct += ok
        print(
            f"{label} -> {output.to_canonical_string(5)} "
            f"class={predicted} {'ok' if ok else 'WRONG'}",
            file=out
        )
    print(f"{correct}/{len(data)} correct", file=out)


def golden_example(args: argparse.Namespace, out: TextIO) -> None:
    """Print one forward/backward pass through a network with known weights."""
    print("Example: One training step on a 2x2 network", file=out)

    nn = NeuralNetwork(2, 2)
    nn.set_weights([
        Matrix.from_literal('[[1, 0.75], [0.5, 0.25]]'),
        Matrix.from_literal('[[0.25, 0.5], [0.75, 1]]'),
    ])
    inputs = [1.0, 1.0]
    targets = [0.0, 1.0]

    sections: List[Tuple[str, List[Matrix]]] = [
        ('Outputs', nn.get_outputs(inputs)),
        ('Errors', nn.get_errors(inputs, targets)),
        ('Deltas', nn.get_deltas(inputs, targets, LEARNING_RATE)),
    ]
    for title, matrices in sections:
        print(f"\n{title}:", file=out)
        for i, matrix in enumerate(matrices):
            print(f"  [{i}] {matrix.to_canonical_string(10)}", file=out)


def random_example(args: argparse.Namespace, out: TextIO) -> None:
    """Print the weights of a freshly randomized 2x2 network."""
    print("Example: Random initial weights", file=out)

    nn = NeuralNetwork(2, 2, rng=np.random.default_rng(args.seed))
    nn.randomize_weights()
    for i, weight in enumerate(nn.get_weights()):
        print(f"Layer {i}: {weight.to_canonical_string(5)}", file=out)


EXAMPLES: Dict[int, Tuple[str, Callable[[argparse.Namespace, TextIO], None]]] = {
    1: ('Learn the XOR gate', xor_example),
    2: ('Forward/backward walkthrough', golden_example),
    3: ('Random network', random_example),
}


# ============================================================================
# MENU
# ============================================================================

def print_menu(out: TextIO) -> None:
    print("\nscratchnet examples", file=out)
    for number, (title, _) in EXAMPLES.items():
        print(f"  {number}. {title}", file=out)
    print("  0. Quit", file=out)


def run_choice(choice: int, args: argparse.Namespace, out: TextIO) -> bool:
    """
    Run one example.

    Returns:
        bool: True if the example ran to completion, False otherwise
    """
    if choice not in EXAMPLES:
        print(f"Invalid selection: {choice}", file=out)
        return False

    title, example = EXAMPLES[choice]
    logger.info(f"Running example {choice}: {title}")
    try:
        example(args, out)
    except MatrixError as e:
        logger.error(f"Example {choice} failed: {e}")
        print(f"Error: {e}", file=out)
        return False
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='scratchnet',
        description='Run the scratchnet matrix and neural network examples.'
    )
    parser.add_argument(
        '--choice', type=int,
        help='run this example number and exit instead of showing the menu'
    )
    parser.add_argument(
        '--epochs', type=int, default=DEFAULT_EPOCHS,
        help=f'training epochs for the XOR example (default {DEFAULT_EPOCHS})'
    )
    parser.add_argument(
        '--seed', type=int, default=None,
        help='seed for the random network example'
    )
    return parser


def main(
    argv: Optional[List[str]] = None,
    stdin: TextIO = sys.stdin,
    out: TextIO = sys.stdout
) -> int:
    """Entry point for the ``scratchnet`` console script."""
    configure_logging()
    args = build_parser().parse_args(argv)

    if args.choice is not None:
        return 0 if run_choice(args.choice, args, out) else 1

    while True:
        print_menu(out)
        print("Select an option: ", end='', file=out, flush=True)
        line = stdin.readline()
        if not line:
            return 0

        try:
            choice = int(line.strip())
        except ValueError:
            print(f"Please enter a number, got {line.strip()!r}", file=out)
            continue

        if choice == 0:
            return 0
        run_choice(choice, args, out)


if __name__ == '__main__':
    sys.exit(main())

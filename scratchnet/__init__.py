"""
scratchnet package
~~~~~~~~~~~~~~~~~~

Dense matrix algebra and a small feed-forward neural network trained by
manual backpropagation, written in plain Python.
Contains the matrix engine, the network, the XOR example data, a text
menu and an API server.
"""

__version__ = "1.0.0"

"""
Neural Calculator - addition and subtraction with a one-neuron dense layer.

Each operation loads its model from `{MODEL_ORIGIN}/model_<operation>/model.json`
and falls back to an in-memory model with the exact coefficients when no
artifact is available.
"""

__version__ = "1.0.0"

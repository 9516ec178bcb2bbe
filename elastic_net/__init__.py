"""
Elastic net regression with a cross-validated penalty.

Run the experiment entrypoint in ``run.py`` to tune the penalty over a 10-fold
cross-validation grid, refit the best configuration on the training split and
score it on the held-out test split.
"""

from .run import main  # re-export the CLI entrypoint for convenience

__all__ = ["main"]

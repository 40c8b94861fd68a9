"""Generic tabular / linear-FA solvers for finite and continuous MDPs."""

__version__ = "0.1.0"

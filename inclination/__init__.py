"""Management Inclination Benchmark: moderated multi-model discussions and votes."""

__version__ = "0.1.0"

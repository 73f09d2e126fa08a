"""Repository health reports: deterministic metrics, scores and a streamed narrative."""

__version__ = "0.1.0"

__all__ = ["__version__"]

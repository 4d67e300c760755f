"""hoya-harvest: search API price collection and checkpointed trend harvest."""

__all__ = ["__version__"]

__version__ = "0.1.0"

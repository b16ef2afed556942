"""dynregion — density-driven region performance controller."""

__version__ = "0.1.0"

"""BookWeaver: outline-driven long-form document generation."""

__all__ = ["__version__"]

__version__ = "0.1.0"

"""Template composer: timeline composition and animation rendering engine."""

__version__ = "0.1.0"

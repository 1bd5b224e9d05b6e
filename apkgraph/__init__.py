"""APK version handling, repository models and dependency resolution."""

__version__ = "0.1.0"

__all__ = [
    "candidates",
    "indexes",
    "repository",
    "resolver",
    "util",
    "version",
    "world",
]
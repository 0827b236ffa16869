"""BLAKE3 compression functions and multi-input hashing kernels."""

__version__ = "0.1.0"
__all__ = ["constants", "portable", "rows", "lanes", "dispatch"]
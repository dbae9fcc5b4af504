"""SwapLoop: alternating APT/kAPT swaps on a Tapp stable pool."""

__version__ = "0.1.0"

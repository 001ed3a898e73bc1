"""GrimSwap relayer: submits zero-knowledge private swaps on behalf of users."""

__version__ = "1.0.0"

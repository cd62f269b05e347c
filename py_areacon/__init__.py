"""Area-constrained partitioning of convex regions with power diagrams."""

__version__ = "0.1.0"

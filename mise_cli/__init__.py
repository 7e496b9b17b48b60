"""mise: dependency graph and change-impact context for automated agents."""

__version__ = "0.4.0"

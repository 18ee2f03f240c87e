"""promptgraph: graph resolution engine and service for prompt-engineering flows."""

__version__ = "0.1.0"

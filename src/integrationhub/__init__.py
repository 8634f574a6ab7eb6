"""Integration hub: connection status broker and structured command router."""

__version__ = "0.1.0"

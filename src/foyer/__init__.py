"""Tool call scheduler for agentic CLIs."""

__version__ = "0.1.0"

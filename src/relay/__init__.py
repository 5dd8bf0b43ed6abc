"""Streaming LLM relay with time-to-first-token instrumentation."""

__version__ = "0.1.0"

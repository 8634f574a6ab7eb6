"""Presentation layer: locale-aware summaries of command results."""

from .summaries import STRINGS, SummaryFormatter, make_summarizer

__all__ = ["STRINGS", "SummaryFormatter", "make_summarizer"]

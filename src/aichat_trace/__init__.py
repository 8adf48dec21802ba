"""Reconstruct conversation turns from Claude Code transcripts and trace them."""

__version__ = "0.1.0"

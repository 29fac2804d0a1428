"""Command line interface for filescout."""

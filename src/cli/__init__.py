"""Command line, configuration, logging and retry helpers."""

"""Command line interface for scmint."""

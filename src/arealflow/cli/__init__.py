"""Command-line interface for arealflow."""

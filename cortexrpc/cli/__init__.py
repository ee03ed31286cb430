"""Command-line interface for cortexrpc."""

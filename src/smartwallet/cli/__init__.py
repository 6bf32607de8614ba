"""Command line tools for smartwallet."""

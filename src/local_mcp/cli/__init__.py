"""Command-line entry points for starting, stopping, and probing the server."""

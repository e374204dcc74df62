"""Command-line pollers for the CAP feed monitor."""

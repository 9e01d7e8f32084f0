"""Command-line application for item collections."""

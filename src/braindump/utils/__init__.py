"""Text and logging utilities."""

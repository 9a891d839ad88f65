"""Analysis, scoring, and HTTP services."""

"""Data models for braindumps."""

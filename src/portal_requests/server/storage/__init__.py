"""Settings persistence."""

"""Service layer for settings resolution, query validation and recent requests."""

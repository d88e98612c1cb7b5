"""HTTP server for the portal requests service."""

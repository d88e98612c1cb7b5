"""Request, response and error models."""

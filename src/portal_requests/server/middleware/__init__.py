"""Request middleware: correlation ids and error envelopes."""

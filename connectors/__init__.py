"""Term store protocol and its implementations."""

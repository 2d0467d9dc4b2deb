"""gumdb CLI command groups."""

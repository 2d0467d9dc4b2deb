"""gumdb command line interface."""

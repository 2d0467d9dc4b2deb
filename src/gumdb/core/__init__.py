"""Core gumdb functionality: connections, the store and frecency scoring."""

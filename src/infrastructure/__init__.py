"""Infrastructure: HTTP sessions and credentials."""

"""Source loading, import resolution and parsing."""

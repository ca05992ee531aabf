"""HTTP transport layer."""

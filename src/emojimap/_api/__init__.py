"""Internal table API operations."""

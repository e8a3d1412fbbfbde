"""Chat pipeline services."""

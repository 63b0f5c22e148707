"""Static archive viewer shipped with the package."""

"""Rate limit hook service package."""

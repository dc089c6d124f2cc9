"""Admin panel web API."""

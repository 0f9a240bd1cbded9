"""Admin pages and API."""

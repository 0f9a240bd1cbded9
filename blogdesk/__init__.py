"""blogdesk - blog CMS access gate and site settings."""

__version__ = "0.1.0"

"""Scheduled maintenance endpoints."""

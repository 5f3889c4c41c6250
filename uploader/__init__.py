"""Resumable upload service: coordinator, HTTP routes and settings."""

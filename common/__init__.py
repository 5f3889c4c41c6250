"""Shared helpers used by the upload service, storage layer and CLI."""

"""Filesystem storage layer: directory primitives, chunk store, completion detection and assembly."""

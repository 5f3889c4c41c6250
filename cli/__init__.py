"""Command-line client that uploads files in resumable chunks."""

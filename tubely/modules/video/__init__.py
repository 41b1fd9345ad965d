"""Video record management module."""

"""Command-line interface for inspecting mapper configurations."""

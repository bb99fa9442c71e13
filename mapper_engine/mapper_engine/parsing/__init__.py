"""YAML document access and property handling."""

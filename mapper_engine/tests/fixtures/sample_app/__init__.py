"""Small application used as a fixture for package scans and mapper binding."""

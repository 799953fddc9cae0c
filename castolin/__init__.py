"""Castolin order and profile API."""

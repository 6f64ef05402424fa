"""Configuration modules (plain Python dicts)."""

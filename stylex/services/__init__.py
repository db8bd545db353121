"""Service integrations shared across domains."""

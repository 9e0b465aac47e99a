"""Third-party supplier integrations."""

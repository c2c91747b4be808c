"""Real-estate marketplace service."""

"""Event source registry, adapters, events cache and fetch orchestration."""

"""Location parsing, geocoding and location caching."""

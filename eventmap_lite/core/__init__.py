"""Core infrastructure shared across eventmap_lite: config, time, HTTP and async helpers."""

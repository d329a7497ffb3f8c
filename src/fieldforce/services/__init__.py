"""Map, viewport and geolocation services."""

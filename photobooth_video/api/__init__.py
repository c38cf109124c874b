"""HTTP API for the photobooth video dispatcher."""

"""Photobooth video generation job dispatcher."""

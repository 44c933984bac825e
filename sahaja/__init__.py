"""Sahaja Krushi client core — caching API access and crop stage progression."""

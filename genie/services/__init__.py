"""Auth, user and dashboard services built on the cache layer."""

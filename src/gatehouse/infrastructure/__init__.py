"""Infrastructure layer: persistence, identity tokens and the HTTP surface."""

"""HTTP API for the gloss graph."""

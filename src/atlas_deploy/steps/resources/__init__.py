"""Steps que reconciliam recursos do cluster."""

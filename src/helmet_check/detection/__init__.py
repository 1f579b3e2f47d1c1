"""Person and helmet detection backed by an external vision model."""

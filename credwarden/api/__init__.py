"""HTTP authentication boundary for credwarden."""

"""Route helpers for the HTTP façade."""

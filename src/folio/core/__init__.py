"""Ambient runtime concerns shared by all list views: logging and tracing."""

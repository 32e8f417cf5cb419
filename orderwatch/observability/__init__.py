"""Logging, metrics and error reporting for orderwatch."""

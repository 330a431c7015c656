"""
Shared utilities: settings, structured logging, the error taxonomy and retry policy.
"""

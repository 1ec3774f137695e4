"""Structured logging, audit trail and security events."""

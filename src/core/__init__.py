"""Shared error taxonomy and client handles used across report layers."""

"""Notification dispatcher collaborator: interface and adapters."""

"""Identity directory collaborator: interface, cache, and adapters."""

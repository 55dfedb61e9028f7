"""Application layer: collaborator ports and their adapters."""

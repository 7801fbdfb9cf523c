"""Content generation collaborator: protocol and LLM-backed adapter."""

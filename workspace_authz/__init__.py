"""Workspace Authz: hierarchical folder/document authorization engine."""

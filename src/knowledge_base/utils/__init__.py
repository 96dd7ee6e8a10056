"""Utility modules for the knowledge base core."""

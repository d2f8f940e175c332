"""Prompt construction and section constants."""

"""repolens: AI-assisted technical reports for GitHub repositories."""

__version__ = "0.1.0"

"""AI-assisted git commits, PR descriptions and Azure DevOps helpers."""

__version__ = "1.4.0"

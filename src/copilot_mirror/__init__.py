"""Mirror curated Copilot resources from a remote repository into a local cache."""

__version__ = "0.4.0"

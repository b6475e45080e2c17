"""FolioForge security and abuse-prevention core."""

__version__ = "0.1.0"

"""Discord guilds and channels as a FUSE filesystem."""

__version__ = "0.1.0"

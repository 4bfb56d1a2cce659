"""Discord control panel for PM2-supervised processes."""

__version__ = "0.1.0"

"""Single-image finishing tool: resize, watermark, encode and report."""

__version__ = "0.3.0"

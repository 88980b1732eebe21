"""cueguard: content-safety pipeline for TheCueRoom community posts."""

__version__ = "0.1.0"

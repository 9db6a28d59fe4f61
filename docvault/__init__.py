"""DocVault — receipt / invoice / contract capture with AI field extraction."""

__version__ = "0.1.0"

"""dotsecrets - Encrypted sync for the secret files in your home directory."""

__version__ = "0.1.0"

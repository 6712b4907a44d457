"""HTTP gateway for the tiedot embedded document database."""

__version__ = "0.1.0"

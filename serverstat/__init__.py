"""serverstat — periodic HTTP(S) availability prober with a small status view."""

__version__ = "0.1.0"

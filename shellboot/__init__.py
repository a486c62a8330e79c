"""shellboot: startup customizer for the interactive Python shell."""

__version__ = "0.1.0"

"""korbivoice - voice capture and signed upload for the Korbi shopping list."""

__version__ = "0.1.0"

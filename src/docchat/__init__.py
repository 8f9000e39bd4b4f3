"""docchat — upload documents and chat with a model grounded in them."""

__version__ = "0.1.0"

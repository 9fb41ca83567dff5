"""Lambda proxy and DynamoDB cache for the training camp backend."""

__version__ = "0.1.0"

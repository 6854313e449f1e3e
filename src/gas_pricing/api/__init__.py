"""API subpackage - thin FastAPI transport over the pricing service."""

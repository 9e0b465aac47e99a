"""Dropshipping storefront backend with CJ Dropshipping integration."""

__version__ = "0.1.0"

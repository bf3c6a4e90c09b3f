"""ProductKit: generate marketing assets for products and publish them to a storefront."""

__version__ = "0.1.0"

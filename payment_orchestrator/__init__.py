"""Payment-order orchestration between a storefront and its payment providers."""

__version__ = "1.0.0"

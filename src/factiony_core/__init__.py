# core package for Factiony
from . import batch, client_cache, discovery, enrichment, resolver, store, sweeper

__all__ = ["batch", "client_cache", "discovery", "enrichment", "resolver", "store", "sweeper"]

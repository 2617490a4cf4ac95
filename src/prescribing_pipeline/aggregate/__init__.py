"""Report-layer aggregation helpers.

This package contains the five analytical passes run over the document
store (practice reconciliation, per-item averages, postcode spend, regional
prices and practice volumes) and the Dask adapters they read shards through.
"""

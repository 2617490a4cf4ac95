"""On-disk BSON document store.

Provides the chunked writer that turns parsed records into numbered shard
files and the reader that streams them back one shard at a time.
"""

"""
latency_proxy — SeedLink INFO STREAMS latency cache with a small HTTP query API.
"""
__version__ = "1.0.0"

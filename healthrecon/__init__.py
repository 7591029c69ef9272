"""HealthRecon content pipeline: crawl, dedup, classify, embed and brief tracked health systems."""

__version__ = "1.0.0"

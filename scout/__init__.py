"""Scout mission pipeline — ICP in, ranked outreach-ready contacts out."""

__version__ = "1.0.0"

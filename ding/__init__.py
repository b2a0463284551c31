"""ding: a small label-driven bookmarking and discussion service."""

__version__ = "0.1.0"

"""Scraper utilities for proxies, domain backoff, browsers and normalization."""

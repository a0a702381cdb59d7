"""Scraping pipeline: fetch, extract, queue and update."""

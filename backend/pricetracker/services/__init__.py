"""Services: caching, analytics, monitoring and product tracking."""

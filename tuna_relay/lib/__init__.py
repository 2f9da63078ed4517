"""Shared plumbing: config, snapshot model, filter, backoff, breaker, watchdog."""

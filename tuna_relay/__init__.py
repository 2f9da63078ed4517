"""Tuna Relay — relays "what is playing" to remote collectors.

Samples a Source Data Provider on a fixed interval, drops unchanged
observations and fans every change out to streaming (SignalR hub) and
transactional (HTTP POST) channels, each with its own recovery policy.
"""

__version__ = "1.3.0"

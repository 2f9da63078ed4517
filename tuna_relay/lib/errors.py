# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Channel-local failures.  None of these ever leave the channel that hit them."""


class RelayError(Exception):
    """Base class for relay delivery errors."""


class ConnectionFailure(RelayError):
    """A streaming connection (socket or hub handshake) could not be set up."""


class TransportClosed(RelayError):
    """The streaming transport is gone, or was never connected."""


class HubError(RelayError):
    """The hub answered an invocation with an error completion."""


class RequestFailure(RelayError):
    """A transactional request failed: network error, bad status or timeout."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status

# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

import logging

from .snapshot import Snapshot, Status

logger = logging.getLogger(__name__)


class ChangeFilter:
    """Decides whether a sampled Snapshot is worth relaying.

    Remembers the last accepted Snapshot.  A candidate passes when it differs
    structurally, except that while nothing is playing a repeat of the same
    status counts as unchanged even if the metadata flaps (paused players
    keep rewriting the title/cover).
    """

    def __init__(self):
        self.last_accepted: Snapshot | None = None

    def should_send(self, candidate: Snapshot) -> bool:
        last = self.last_accepted
        if last is not None:
            if candidate == last:
                return False
            if candidate.status is not Status.PLAYING and candidate.status is last.status:
                logger.debug("Still %s, ignoring metadata change (%s)",
                             candidate.status.value, candidate.title)
                return False
        self.last_accepted = candidate
        return True

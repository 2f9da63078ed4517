# Tuna Relay
# Copyright (C) 2026 Tuna Relay contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Interface every Source Data Provider implements."""

from abc import ABC, abstractmethod

from ..lib.snapshot import Snapshot


class Provider(ABC):
    id: str = ""

    @abstractmethod
    async def sample(self) -> Snapshot | None:
        """Return the current observation, or None when there is nothing to report.

        Called once per sampling tick; must return well within the tick interval.
        """

    async def close(self) -> None:
        pass  # nothing to release by default

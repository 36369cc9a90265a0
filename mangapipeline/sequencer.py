"""
Reading order assembly for right-to-left books.
"""

import logging
from pathlib import Path
from typing import Callable, Iterable

from .models import LogicalItem, PageRecord, Placement, Single, Spread

logger = logging.getLogger(__name__)


class PageSequencer:
    """Orders logical items into page records with spread placements.

    A single page seen before anything else has claimed the opening (a
    cover or a spread) is the cover and stands alone. Later singles are
    paired two by two into spreads. A single still waiting for a partner
    when a spread (or the end) arrives stands alone as a right page; it
    is never dropped or merged into the spread.
    """

    def __init__(self, log: Callable[[str], None] | None = None) -> None:
        self.log = log or logger.info

    def sequence(self, items: Iterable[LogicalItem]) -> list[PageRecord]:
        """Build the final reading order.

        Args:
            items: Logical items in input order

        Returns:
            Ordered page records
        """
        pages: list[PageRecord] = []
        first_single_seen = False
        pending: Path | None = None

        for item in items:
            if isinstance(item, Spread):
                if pending is not None:
                    pages.append(PageRecord(pending, Placement.RIGHT))
                    pending = None
                pages.append(PageRecord(item.right, Placement.RIGHT))
                pages.append(PageRecord(item.left, Placement.LEFT))
                first_single_seen = True

            elif isinstance(item, Single):
                if not first_single_seen:
                    self.log(f"Cover: {item.image.name}")
                    pages.append(PageRecord(item.image, Placement.RIGHT))
                    first_single_seen = True
                elif pending is None:
                    pending = item.image
                else:
                    pages.append(PageRecord(pending, Placement.RIGHT))
                    pages.append(PageRecord(item.image, Placement.LEFT))
                    pending = None

            else:
                raise TypeError(f"Unknown logical item: {item!r}")

        # Odd tail page
        if pending is not None:
            pages.append(PageRecord(pending, Placement.RIGHT))

        return pages


def sequence_pages(items: Iterable[LogicalItem]) -> list[PageRecord]:
    """Convenience wrapper logging through the module logger."""
    return PageSequencer().sequence(items)

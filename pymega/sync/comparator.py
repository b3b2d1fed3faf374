"""File comparison logic for sync operations."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ChangeDecision:
    """Represents a decision about whether a file must be transferred."""

    needs_transfer: bool
    """True if the destination must be replaced by the source"""

    reason: str
    """Human-readable reason for this decision"""


class FileComparator:
    """Decides whether a file differs between source and destination.

    Only size and timestamp are compared; contents are never read. The same
    rule applies to uploads and downloads, only the roles of local and
    remote are swapped.

    Examples:
        >>> comparator = FileComparator()
        >>> comparator.compare(10, 1700000000, 10, 1700000000).needs_transfer
        False
        >>> comparator.compare(10, 1700000000, 12, 1700000000).reason
        'sizes differ'
    """

    def __init__(self, always: bool = False):
        """Initialize file comparator.

        Args:
            always: Transfer every file regardless of size and timestamp
        """
        self.always = always

    def compare(
        self,
        source_size: int,
        source_timestamp: int,
        dest_size: int,
        dest_timestamp: int,
    ) -> ChangeDecision:
        """Compare a source file with the existing destination file.

        Args:
            source_size: Size of the authoritative file in bytes
            source_timestamp: Effective timestamp of the authoritative file
            dest_size: Size of the file to be replaced
            dest_timestamp: Effective timestamp of the file to be replaced

        Returns:
            ChangeDecision for this file
        """
        if self.always:
            return ChangeDecision(True, "transfer forced")

        if source_size != dest_size:
            return ChangeDecision(True, "sizes differ")

        # Timestamps have whole-second resolution on the remote side
        if int(source_timestamp) != int(dest_timestamp):
            return ChangeDecision(True, "timestamp mismatch")

        return ChangeDecision(False, "appears identical")

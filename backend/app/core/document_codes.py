"""Document Codes — partition derivation and public identifier formatting.

Invariants:
    - Partition key is the UTC calendar date of the given instant, as YYYYMMDD
    - Code is PREFIX-{partition}-{sequence zero-padded to 5 digits}
    - Same (prefix, partition, sequence) always yields the same code
    - Every formatted code parses back, whatever the configured prefix

Design Decisions:
    - Clock is an argument, not read here: core stays deterministic and tests
      can pin the partition without freezing time globally
"""

import re
from datetime import datetime, timezone

from app.core.domain_types import PartitionKey, SequenceNumber

SEQUENCE_WIDTH = 5

# Prefix is whatever Settings.document_code_prefix holds, hyphens included
_CODE_PATTERN = re.compile(r"^(?P<prefix>.+)-(?P<partition>\d{8})-(?P<sequence>\d{5,})$")


def derive_partition_key(now: datetime) -> PartitionKey:
    """UTC date of *now* as YYYYMMDD. Naive datetimes are treated as UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return PartitionKey(now.astimezone(timezone.utc).strftime("%Y%m%d"))


def format_document_code(
    prefix: str, partition: PartitionKey, sequence: SequenceNumber,
) -> str:
    if not prefix:
        raise ValueError("prefix must be non-empty")
    if sequence < 1:
        raise ValueError(f"sequence must be >= 1, got {sequence}")
    return f"{prefix}-{partition}-{sequence:0{SEQUENCE_WIDTH}d}"


def parse_document_code(code: str) -> tuple[str, PartitionKey, SequenceNumber] | None:
    """Split a code into (prefix, partition, sequence), or None if malformed."""
    match = _CODE_PATTERN.match(code)
    if not match:
        return None
    return (
        match["prefix"],
        PartitionKey(match["partition"]),
        SequenceNumber(int(match["sequence"])),
    )


def is_contiguous_run(sequences: list[int]) -> bool:
    """True if *sequences* are duplicate-free and form one unbroken run."""
    if not sequences:
        return True
    ordered = sorted(sequences)
    return ordered == list(range(ordered[0], ordered[0] + len(ordered)))

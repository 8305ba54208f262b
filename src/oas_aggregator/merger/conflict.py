"""Conflict resolver: decide what to do when two specs claim one identity.

Pure and deterministic; the merger carries out the returned action.
"""

from enum import Enum

from oas_aggregator.config import ConflictPolicy
from oas_aggregator.merger.shapes import is_compatible
from oas_aggregator.parser.base import MergeConflict

DEFAULT_POLICY = ConflictPolicy()


class Action(str, Enum):
    MERGE_IN_PLACE = "mergeInPlace"
    RENAME_AND_KEEP_BOTH = "renameAndKeepBoth"
    PREFER_FIRST = "preferFirst"


def resolve_conflict(conflict: MergeConflict, policy: ConflictPolicy = DEFAULT_POLICY) -> Action:
    """Return the action for ``conflict`` under ``policy``.

    Schema conflicts need ``conflict.existing`` and ``conflict.incoming``
    for the compatibility check under the 'auto' policy.
    """
    if conflict.kind == "schema":
        if policy.schemas == "prefer_first":
            return Action.PREFER_FIRST
        if policy.schemas == "rename":
            if conflict.existing == conflict.incoming:
                return Action.MERGE_IN_PLACE
            return Action.RENAME_AND_KEEP_BOTH
        if is_compatible(conflict.existing, conflict.incoming):
            return Action.MERGE_IN_PLACE
        return Action.RENAME_AND_KEEP_BOTH

    if conflict.kind == "component":
        # parameters, responses, requestBodies, ...: equal or renamed
        if conflict.existing == conflict.incoming or policy.schemas == "prefer_first":
            return Action.PREFER_FIRST
        return Action.RENAME_AND_KEEP_BOTH

    if conflict.kind == "operation":
        if policy.operations == "prefer_first":
            return Action.PREFER_FIRST
        return Action.MERGE_IN_PLACE

    if conflict.kind == "header":
        if policy.headers == "keep":
            return Action.PREFER_FIRST
        return Action.MERGE_IN_PLACE

    raise ValueError(f"Unknown conflict kind: {conflict.kind}")

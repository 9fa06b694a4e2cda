"""
Team-membership cleanup.

Athletes imported without a team were tagged with a placeholder team id
("unknown", sometimes "Unknown"). The cleanup removes every case variant of
that sentinel from ``team_ids`` and leaves the remaining assignments alone.
"""

from .classify import Classifier, Verdict
from .normalize import read_field, strip_sentinel

DEFAULT_SENTINEL = "unknown"


def classify_team_cleanup(sentinel: str = DEFAULT_SENTINEL) -> Classifier:
    """
    Verdict is an update only when the cleaned list is shorter than the
    current one, so an already clean athlete costs no store call.
    """
    def classify(record):
        team_ids = read_field(record, "team_ids") or []
        if not isinstance(team_ids, list):
            return Verdict.skip("team_ids is not a list")
        cleaned = strip_sentinel(team_ids, sentinel)
        if len(cleaned) == len(team_ids):
            return Verdict.skip("no sentinel")
        return Verdict.update({"team_ids": cleaned}, f"removed {len(team_ids) - len(cleaned)} {sentinel!r}")

    return classify

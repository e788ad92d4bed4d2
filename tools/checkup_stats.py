"""Checkup completion statistics, computed from the progress map."""
from models.checkup import CheckupSession, CheckupStats


def compute_checkup_stats(session: CheckupSession, fill_unlogged_as_missed: bool = False) -> CheckupStats:
    """Count completed / missed / logged items.

    Partial counts as completed. A logged item without a status (a vital)
    counts as completed. Locally skipped items are logged but neither.
    With `fill_unlogged_as_missed` (user stopped the bilan), every unlogged
    item is counted as missed.
    """
    completed = 0
    missed = 0
    logged = 0

    for item in session.items:
        progress = session.aux.progress.get(item.id)
        if progress is None:
            continue
        status = (progress.logged_status or "").strip().lower()
        if status or progress.logged_at:
            logged += 1

        if status == "missed":
            missed += 1
        elif status in ("completed", "partial"):
            completed += 1
        elif not status and progress.logged_at:
            completed += 1

    if fill_unlogged_as_missed:
        missed += max(0, len(session.items) - logged)

    return CheckupStats(items=len(session.items), completed=completed, missed=missed, logged=logged)

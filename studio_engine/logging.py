"""studio_engine.logging

Narrative log feed + run export helpers.

The in-state log is a short, human-readable feed (most recent N lines).
A run export is JSON-serializable so it can be saved/shared and replayed later.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from studio_core.launch import TerminalCheck
from studio_core.state import GameState, LogEntry, state_to_dict, thaw_snapshot


def week_log_entries(
    *,
    week: int,
    event_id: Optional[str],
    event_name: Optional[str],
    event_message: Optional[str],
    decision: Optional[str],
    newly_reached: Sequence[str],
    release_attempted: bool,
    release_executed: bool,
    launch_outcome: Optional[str],
    terminal: TerminalCheck,
) -> List[LogEntry]:
    """Lines for what happened this week, in feed order."""
    entries: List[LogEntry] = []

    if event_id is not None:
        entries.append(
            LogEntry(
                week=week,
                type="event",
                message=event_message or event_name or event_id,
                event_id=event_id,
                decision=decision,
            )
        )

    if newly_reached:
        entries.append(LogEntry(week=week, type="milestone", message=f"Reached milestones: {', '.join(newly_reached)}."))

    if release_executed:
        entries.append(LogEntry(week=week, type="launch", message=f"Launch outcome: {launch_outcome}."))

    if release_attempted and not release_executed:
        entries.append(
            LogEntry(week=week, type="warning", message="Release request ignored because guardrails were not met.")
        )

    if terminal.is_terminal:
        entries.append(
            LogEntry(
                week=week,
                type="success" if terminal.type == "success" else "failure",
                message=terminal.message or "",
            )
        )

    return entries


def append_log_entries(logs: Tuple[LogEntry, ...], entries: Sequence[LogEntry], limit: int) -> Tuple[LogEntry, ...]:
    combined = tuple(logs) + tuple(entries)
    if limit <= 0:
        return ()
    return combined[-limit:]


def make_run_export(*, seed: int, config: Dict[str, Any], initial_state: GameState, final_state: GameState) -> Dict[str, Any]:
    return {
        "version": 1,
        "seed": int(seed),
        "config": dict(config),
        "initial_state": state_to_dict(initial_state),
        "week_logs": [thaw_snapshot(h) for h in final_state.history],
        "narrative": [asdict(e) for e in final_state.logs],
        "final_state": state_to_dict(final_state),
    }


def dumps_run_export(obj: Dict[str, Any]) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2, sort_keys=True)

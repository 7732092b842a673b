# src/conductor_board/planning/plan.py

"""
Plan ingestion helpers.

The planning agent returns task skeletons (title/description/priority);
the core assigns ids and initial state before the board is replaced.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Iterable
from typing import Any

from ..tasks.task_models import Task, TaskPriority, TaskSkeleton, TaskStatus, new_task_id

logger = logging.getLogger(__name__)

MIN_PLAN_TASKS = 4
MAX_PLAN_TASKS = 8

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


class PlanGenerationError(RuntimeError):
    """The planner could not produce a usable plan."""


def build_tasks(
    skeletons: Iterable[TaskSkeleton],
    *,
    id_factory: Callable[[], str] = new_task_id,
) -> list[Task]:
    return [
        Task(
            id=id_factory(),
            title=s.title,
            description=s.description,
            priority=s.priority,
            status=TaskStatus.PENDING,
            progress=0,
        )
        for s in skeletons
    ]


def skeletons_from_json(raw: str | Any) -> list[TaskSkeleton]:
    """
    Validate planner output.

    Accepts a JSON string (optionally wrapped in a ``` code fence) or an
    already-decoded list. Items without a title are skipped; an empty result
    raises PlanGenerationError.
    """
    data: Any = raw
    if isinstance(raw, str):
        text = raw.strip()
        m = _FENCE_RE.match(text)
        if m:
            text = m.group(1)
        try:
            data = json.loads(text)
        except ValueError as e:
            raise PlanGenerationError("Planner returned invalid JSON.") from e

    # Some models wrap the list: {"tasks": [...]}.
    if isinstance(data, dict) and isinstance(data.get("tasks"), list):
        data = data["tasks"]

    if not isinstance(data, list):
        raise PlanGenerationError("Planner output is not a list of tasks.")

    out: list[TaskSkeleton] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        if not isinstance(title, str) or not title.strip():
            continue
        description = item.get("description")
        out.append(
            TaskSkeleton(
                title=title.strip(),
                description=description.strip() if isinstance(description, str) else "",
                priority=TaskPriority.from_wire(item.get("priority")),
            )
        )

    if not out:
        raise PlanGenerationError("Planner returned no tasks.")

    if not MIN_PLAN_TASKS <= len(out) <= MAX_PLAN_TASKS:
        logger.info("Planner returned %d tasks (expected %d-%d)", len(out), MIN_PLAN_TASKS, MAX_PLAN_TASKS)
    return out

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Optional

from eve_industry_planner.domain.blueprint import MaterialRequirement, ProductionActivity


class NodeKind(str, Enum):
    RAW = "raw"
    INTERMEDIATE = "intermediate"


@dataclass(frozen=True)
class RequirementNode:
    """One node of an expanded bill of materials.

    RAW nodes are leaves (bought from the market). INTERMEDIATE nodes carry the
    job that produces them: the blueprint, the number of runs, the research
    levels it ran with and its children (one per input, in blueprint order).
    """

    type_id: int
    quantity: int
    kind: NodeKind = NodeKind.RAW

    blueprint_id: Optional[int] = None
    activity: Optional[ProductionActivity] = None
    runs: int = 0
    me_level: int = 0
    te_level: int = 0
    job_time_seconds: int = 0

    # Unmodified per-run inputs of the job; used for EIV.
    base_materials: tuple[MaterialRequirement, ...] = field(default_factory=tuple)
    material_multiplier: float = 1.0
    time_multiplier: float = 1.0
    cost_multiplier: float = 1.0
    children: tuple["RequirementNode", ...] = field(default_factory=tuple)

    @property
    def is_intermediate(self) -> bool:
        return self.kind == NodeKind.INTERMEDIATE

    def iter_jobs(self) -> Iterator["RequirementNode"]:
        """Yield every job node, pre-order (root first)."""
        if not self.is_intermediate:
            return
        yield self
        for child in self.children:
            yield from child.iter_jobs()

    def iter_leaves(self) -> Iterator["RequirementNode"]:
        if not self.is_intermediate:
            yield self
            return
        for child in self.children:
            yield from child.iter_leaves()

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "type_id": self.type_id,
            "quantity": self.quantity,
            "kind": self.kind.value,
            "is_intermediate": self.is_intermediate,
        }
        if self.is_intermediate:
            out.update(
                {
                    "blueprint_id": self.blueprint_id,
                    "activity": self.activity.value if self.activity else None,
                    "runs": self.runs,
                    "me_level": self.me_level,
                    "te_level": self.te_level,
                    "job_time_seconds": self.job_time_seconds,
                    "material_multiplier": self.material_multiplier,
                    "time_multiplier": self.time_multiplier,
                    "children": [c.to_dict() for c in self.children],
                }
            )
        return out


def flatten(root: RequirementNode) -> dict[int, int]:
    """Sum leaf quantities by type id.

    Keys keep first-seen depth-first order so two identical resolves produce
    identical maps.
    """

    flat: dict[int, int] = {}
    for leaf in root.iter_leaves():
        flat[leaf.type_id] = flat.get(leaf.type_id, 0) + int(leaf.quantity)
    return flat


def total_job_time_seconds(root: RequirementNode) -> int:
    return sum(int(job.job_time_seconds) for job in root.iter_jobs())

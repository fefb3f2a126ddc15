"""Ordered routing flow of departments."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from database import DepartmentDB


@dataclass(frozen=True)
class DepartmentFlow:
    """Department ids in routing order plus their display names."""

    order: List[int]
    names: Dict[int, str] = field(default_factory=dict)

    def __contains__(self, department_id: Optional[int]) -> bool:
        return department_id in self.order

    @property
    def first(self) -> Optional[int]:
        return self.order[0] if self.order else None

    @property
    def last(self) -> Optional[int]:
        return self.order[-1] if self.order else None

    def position(self, department_id: Optional[int]) -> Optional[int]:
        """1-based position in the flow, None for departments outside it."""
        if department_id not in self.order:
            return None
        return self.order.index(department_id) + 1

    def department_at(self, position: int) -> Optional[int]:
        if 1 <= position <= len(self.order):
            return self.order[position - 1]
        return None

    def next_department(self, department_id: Optional[int]) -> Optional[int]:
        if department_id is None:
            return self.first
        position = self.position(department_id)
        if position is None:
            return None
        return self.department_at(position + 1)

    def previous_department(self, department_id: Optional[int]) -> Optional[int]:
        position = self.position(department_id)
        if position is None:
            return None
        return self.department_at(position - 1)

    def is_final_department(self, department_id: Optional[int]) -> bool:
        return department_id is not None and department_id == self.last

    def describe(self, department_id: Optional[int]) -> Optional[Dict[str, object]]:
        if department_id is None:
            return None
        return {
            "id": department_id,
            "name": self.names.get(department_id),
            "position": self.position(department_id),
        }

    def to_list(self) -> List[Dict[str, object]]:
        return [self.describe(dept_id) for dept_id in self.order]


def load_flow(db: Session) -> DepartmentFlow:
    """Build the flow from departments carrying a `flow_order`."""
    departments = db.query(DepartmentDB).order_by(DepartmentDB.flow_order, DepartmentDB.id).all()
    order = [d.id for d in departments if d.flow_order is not None]
    return DepartmentFlow(order=order, names={d.id: d.name for d in departments})

from collections import deque
from typing import Dict, List, Set, Tuple
import logging

from schemasync.domain.entities.operations import MigrationOperation, OperationType

logger = logging.getLogger(__name__)

TableKey = Tuple[str, str]

_ALTER_ORDER = (
    OperationType.ALTER_COLUMN_TYPE,
    OperationType.ALTER_NULLABILITY,
    OperationType.SET_DEFAULT,
    OperationType.DROP_DEFAULT,
)
_DROP_ORDER = (
    OperationType.DROP_CONSTRAINT,
    OperationType.DROP_COLUMN,
    OperationType.DROP_TABLE,
)


class OperationSorter:
    """
    Orders operations so that no statement references an object that does not
    exist yet, and nothing is dropped while the batch still depends on it.
    Single Responsibility: execution planning only.

    Phases: schemas, tables (referenced tables first), columns, alterations,
    unique constraints, foreign keys, then drops. A dropped constraint whose
    name is re-added in the same batch moves ahead of the unique constraints.
    """

    def sort(self, operations: List[MigrationOperation]) -> List[MigrationOperation]:
        by_type: Dict[OperationType, List[MigrationOperation]] = {t: [] for t in OperationType}
        for op in operations:
            by_type[op.type].append(op)

        ordered: List[MigrationOperation] = []
        ordered.extend(self._unique_schemas(by_type[OperationType.CREATE_SCHEMA]))

        tables = self._order_tables(by_type[OperationType.CREATE_TABLE], by_type[OperationType.ADD_FOREIGN_KEY])
        ordered.extend(tables)
        position = {op.table_key: i for i, op in enumerate(tables)}
        last = len(position)

        ordered.extend(sorted(
            by_type[OperationType.ADD_COLUMN],
            key=lambda op: (position.get(op.table_key, last), op.column or ""),
        ))
        for op_type in _ALTER_ORDER:
            ordered.extend(by_type[op_type])

        # a constraint re-added under the same name must be dropped first
        re_added = {
            (op.table_key, op.resolved_constraint_name)
            for op in by_type[OperationType.ADD_UNIQUE] + by_type[OperationType.ADD_FOREIGN_KEY]
        }
        drops = by_type[OperationType.DROP_CONSTRAINT]
        replaced = [op for op in drops if (op.table_key, op.constraint_name) in re_added]
        by_type[OperationType.DROP_CONSTRAINT] = [op for op in drops if op not in replaced]
        ordered.extend(replaced)

        ordered.extend(by_type[OperationType.ADD_UNIQUE])
        ordered.extend(sorted(
            by_type[OperationType.ADD_FOREIGN_KEY],
            key=lambda op: (position.get(op.ref_table_key, last), position.get(op.table_key, last)),
        ))
        for op_type in _DROP_ORDER:
            ordered.extend(by_type[op_type])

        logger.debug(f"[OperationSorter] Sorted {len(ordered)} operations")
        return ordered

    def _unique_schemas(self, ops: List[MigrationOperation]) -> List[MigrationOperation]:
        seen: Set[str] = set()
        unique = []
        for op in ops:
            if op.schema not in seen:
                seen.add(op.schema)
                unique.append(op)
        return unique

    def _order_tables(
        self, creates: List[MigrationOperation], foreign_keys: List[MigrationOperation]
    ) -> List[MigrationOperation]:
        """Kahn's algorithm over FKs between tables created in this batch."""
        nodes: Dict[TableKey, MigrationOperation] = {}
        for op in creates:
            nodes.setdefault(op.table_key, op)

        depends_on: Dict[TableKey, Set[TableKey]] = {key: set() for key in nodes}
        dependents: Dict[TableKey, Set[TableKey]] = {key: set() for key in nodes}
        for fk in foreign_keys:
            source, target = fk.table_key, fk.ref_table_key
            if source in nodes and target in nodes and source != target:
                depends_on[source].add(target)
                dependents[target].add(source)

        in_degree = {key: len(deps) for key, deps in depends_on.items()}
        queue = deque(key for key in nodes if in_degree[key] == 0)
        ordered: List[TableKey] = []
        while queue:
            key = queue.popleft()
            ordered.append(key)
            # keep batch order among tables released by the same parent
            for dependent in (k for k in nodes if k in dependents[key]):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        placed = set(ordered)
        residual = [key for key in nodes if key not in placed]
        if residual:
            logger.info(f"[OperationSorter] Foreign key cycle between {len(residual)} new tables")
        return [nodes[key] for key in ordered + residual]

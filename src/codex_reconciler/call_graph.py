# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Call graph resolver.

Turns the textual callee names recorded on each FunctionFact into CallEdges
between concrete ``name@file`` nodes.

Resolution rules:
- A callee name resolves to a declared function with exactly the same bare name.
- When several files declare that name, the first declaration in the fact
  store's stable enumeration wins (file path order, then declaration order).
  No import analysis is attempted; this favors a stable answer over a
  precise one.
- The chosen declaration receives the caller in its ``called_by`` list.
  Homonyms that were not chosen receive nothing.
- Names with no declaration produce no edge. They are recorded as
  UnresolvedCall entries unless listed in Config.ignored_callees.
- Duplicate (from, to, kind) edges collapse to one; self-edges are dropped.
- A same-file homonym (two classes with a `create` method) shares the first
  declaration's node, and its callee names are resolved on that node.
"""

import logging
from typing import Optional

from codex_reconciler.config import Config
from codex_reconciler.fact_store import FactStore
from codex_reconciler.models import (
    CallEdge,
    CallGraph,
    DependencyNode,
    EdgeKind,
    FunctionFact,
    UnresolvedCall,
)

logger = logging.getLogger(__name__)


class CallGraphResolver:
    """Builds a CallGraph from a frozen FactStore.

    Usage:
        resolver = CallGraphResolver(store)
        graph = resolver.build()
    """

    def __init__(self, store: FactStore, config: Optional[Config] = None) -> None:
        """Initialize the resolver.

        Args:
            store: Fact store to resolve against. Must be frozen before build().
            config: Configuration; defaults are used when None.
        """
        self._store = store
        self._config = config if config is not None else Config.defaults()
        self._ignored = set(self._config.ignored_callees)

    def resolve(self, callee_name: str) -> Optional[FunctionFact]:
        """Resolve a bare callee name to its chosen declaration, or None."""
        return self._store.first_declaration(callee_name)

    def build(self) -> CallGraph:
        """Resolve every callee name of every function.

        Running build() on the same store twice yields the same edges in the
        same order; ``called_by`` lists are rebuilt from scratch each time.

        Returns:
            The resolved CallGraph.

        Raises:
            FactStoreNotFrozenError: If the store is not frozen.
        """
        self._store.require_frozen()
        graph = CallGraph()
        functions = self._store.iter_functions()

        for func in functions:
            func.called_by = []
            graph.add_node(
                DependencyNode(id=func.function_id, name=func.name, file=func.defining_file)
            )

        for caller in functions:
            caller_id = caller.function_id
            for callee_name in self._store.callee_names(caller):
                target = self.resolve(callee_name)
                if target is None:
                    if callee_name not in self._ignored:
                        graph.add_unresolved(UnresolvedCall(caller_id, callee_name))
                    continue

                target_id = target.function_id
                if target_id == caller_id:
                    continue

                graph.add_edge(CallEdge(from_id=caller_id, to_id=target_id, kind=EdgeKind.CALLS))
                if caller_id not in target.called_by:
                    target.called_by.append(caller_id)

        logger.info(
            f"Call graph built: {len(graph.nodes)} nodes, {len(graph.edges)} edges, "
            f"{len(graph.unresolved)} unresolved references"
        )
        return graph

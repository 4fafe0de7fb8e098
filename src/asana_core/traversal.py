"""Traversal Engine: depth-bounded, cycle-safe expansion of resource hierarchies.

Walks nested containers (portfolio -> projects/portfolios, project -> tasks,
task -> subtasks) level by level with an explicit work queue. The caller
controls the depth, so nothing here recurses on the Python call stack.

Node lifecycle:
- PENDING: enqueued, not yet fetched
- EXPANDED: fetched, children enumerated
- DONE: fetched, no further expansion (depth exhausted or no child relation)

Siblings within one level are fetched with bounded concurrency; results are
reassembled by enqueue position so the output order never depends on which
request finishes first. Any failure aborts the whole traversal.
"""
import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, Iterable, NamedTuple, Optional, Protocol, Sequence

from .errors import MissingRequiredContext
from .fields import DetailLevel
from .models import Reference, Resource

logger = logging.getLogger("asana-core.traversal")

UNLIMITED = -1


class ChildRelation(NamedTuple):
    """How to enumerate the children of one resource kind."""

    path: str                   # listing endpoint, formatted with the parent gid
    listing_kind: str           # field-set kind requested on the listing
    child_kind: Optional[str]   # kind of every child; None = read the item's resource_type
    output_key: str             # key holding the children in the encoded tree
    hydrate: bool = False       # fetch each child individually after listing it
    accepts: tuple[str, ...] = ()  # child kinds kept when child_kind is None
    count_field: Optional[str] = None  # skip the listing when this field is 0


CHILD_RELATIONS: dict[str, ChildRelation] = {
    "portfolio": ChildRelation(
        path="/portfolios/{gid}/items",
        listing_kind="portfolio_item",
        child_kind=None,
        output_key="items",
        hydrate=True,
        accepts=("project", "portfolio"),
    ),
    "project": ChildRelation(
        path="/projects/{gid}/tasks",
        listing_kind="task",
        child_kind="task",
        output_key="tasks",
    ),
    "task": ChildRelation(
        path="/tasks/{gid}/subtasks",
        listing_kind="task",
        child_kind="task",
        output_key="subtasks",
        count_field="num_subtasks",
    ),
}


class ResourceSource(Protocol):
    """The dispatcher operations the engine needs."""

    async def fetch(
        self,
        kind: str,
        gid: str,
        detail_level: DetailLevel = DetailLevel.STANDARD,
        extra_fields: Optional[Sequence[str]] = None,
    ) -> Resource:
        ...

    async def list_all(
        self,
        path: str,
        field_kind: str,
        detail_level: DetailLevel = DetailLevel.STANDARD,
        extra_fields: Optional[Sequence[str]] = None,
    ) -> list[Resource]:
        ...


class NodeState(str, enum.Enum):
    PENDING = "pending"
    EXPANDED = "expanded"
    DONE = "done"


def budget_from_depth(depth: Optional[int]) -> Optional[int]:
    """Caller depth -> remaining budget; any negative depth means unlimited (None)."""
    if depth is None:
        return 0
    if depth < 0:
        return None
    return depth


async def bounded_gather(factories: Sequence[Callable[[], Awaitable[Any]]], limit: int) -> list:
    """Run coroutine factories with at most ``limit`` in flight.

    Results come back in input order. On the first failure every other task
    is cancelled and the failure is re-raised.
    """
    if not factories:
        return []
    semaphore = asyncio.Semaphore(max(1, limit))

    async def run(factory):
        async with semaphore:
            return await factory()

    tasks = [asyncio.ensure_future(run(factory)) for factory in factories]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class TreeNode:
    """One node of the output tree: a fetched resource and its ordered children."""

    def __init__(self, reference: Reference, level: int = 0, cycle: bool = False):
        self.reference = reference
        self.level = level
        self.cycle = cycle
        self.resource: Optional[Resource] = None
        self.state = NodeState.DONE if cycle else NodeState.PENDING
        self.children: list["TreeNode"] = []

    @property
    def kind(self) -> Optional[str]:
        if self.resource is not None and self.resource.resource_type:
            return self.resource.resource_type
        return self.reference.resource_type

    @property
    def gid(self) -> str:
        return self.reference.gid

    def _encode_self(self) -> dict:
        if self.cycle or self.resource is None:
            data = self.reference.encode()
            if self.cycle:
                data["cycle"] = True
            return data
        data = self.resource.encode()
        if self.kind and "resource_type" not in data:
            data["resource_type"] = self.kind
        return data

    def encode(self) -> dict:
        """Encode the subtree rooted here, children under the relation's key."""
        root = self._encode_self()
        stack = [(self, root)]
        while stack:
            node, out = stack.pop()
            if node.state != NodeState.EXPANDED:
                continue
            relation = CHILD_RELATIONS[node.kind]
            children_out = []
            out[relation.output_key] = children_out
            for child in node.children:
                child_out = child._encode_self()
                children_out.append(child_out)
                stack.append((child, child_out))
        return root

    def walk(self) -> Iterable["TreeNode"]:
        """Pre-order iteration over this subtree, parents before children."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


class TraversalNode:
    """Work item: a reference, its remaining budget and the ids of its ancestors."""

    def __init__(
        self,
        slot: TreeNode,
        remaining: Optional[int],
        ancestors: frozenset,
        listed: Optional[Resource] = None,
    ):
        self.slot = slot
        self.remaining = remaining
        self.ancestors = ancestors
        self.listed = listed

    @property
    def has_budget(self) -> bool:
        return self.remaining is None or self.remaining > 0

    def child_budget(self) -> Optional[int]:
        return None if self.remaining is None else self.remaining - 1


class TraversalResult:
    """Outcome of one traversal: the tree plus the cyclic edges that were cut."""

    def __init__(self, root: TreeNode, cycles: list[tuple[str, str]]):
        self.root = root
        self.cycles = cycles

    def encode(self) -> dict:
        return self.root.encode()

    def descendants(self, kind: Optional[str] = None) -> list[Resource]:
        """Fetched resources below the root in pre-order, optionally of one kind."""
        found = []
        for node in self.root.walk():
            if node is self.root or node.cycle or node.resource is None:
                continue
            if kind is None or node.kind == kind:
                found.append(node.resource)
        return found


class TraversalEngine:
    """Expands a root reference into a tree, one level at a time."""

    def __init__(self, source: ResourceSource, max_concurrency: int = 4):
        self.source = source
        self.max_concurrency = max_concurrency

    async def traverse(
        self,
        root: Reference,
        depth: Optional[int] = 0,
        expand_kinds: Optional[Iterable[str]] = None,
        detail_level: DetailLevel = DetailLevel.STANDARD,
        extra_fields: Optional[Sequence[str]] = None,
        extra_fields_kind: Optional[str] = None,
        fetch_root: bool = True,
    ) -> TraversalResult:
        """Traverse the hierarchy below ``root``.

        Args:
            root: Starting reference; its resource_type selects the child relation
            depth: -1 = unlimited, 0 = root only, N = enumerate N levels below the root
            expand_kinds: Kinds whose children are enumerated (default: every known relation)
            detail_level: Detail level for every fetch
            extra_fields: Caller fields appended for nodes of ``extra_fields_kind``
            extra_fields_kind: Kind receiving ``extra_fields`` (default: the root's kind)
            fetch_root: Fetch the root itself; when False only its children are listed

        Returns:
            TraversalResult whose tree mirrors the hierarchy in server order

        Raises:
            MissingRequiredContext: The root has no resource_type
            AsanaError: The first failure of any fetch; no partial tree is returned
        """
        if not root.resource_type:
            raise MissingRequiredContext("resource_type")

        expandable = set(expand_kinds) if expand_kinds is not None else set(CHILD_RELATIONS)
        extras_kind = extra_fields_kind or root.resource_type
        cycles: list[tuple[str, str]] = []

        def fields_for(kind: Optional[str]) -> Optional[Sequence[str]]:
            return extra_fields if kind == extras_kind else None

        root_slot = TreeNode(root, level=0)
        frontier = [TraversalNode(root_slot, budget_from_depth(depth), frozenset())]
        if not fetch_root:
            root_slot.resource = Resource(gid=root.gid, resource_type=root.resource_type)

        logger.debug(f"Traversing {root.resource_type} {root.gid} (depth={depth})")

        while frontier:
            # Fetch every pending node of this level
            to_fetch = [node for node in frontier if node.slot.resource is None]
            fetched = await bounded_gather(
                [self._fetcher(node, detail_level, fields_for(node.slot.kind)) for node in to_fetch],
                self.max_concurrency,
            )
            for node, resource in zip(to_fetch, fetched):
                node.slot.resource = resource

            # Enumerate children of nodes with budget left
            to_expand = []
            for node in frontier:
                relation = CHILD_RELATIONS.get(node.slot.kind)
                if relation is None or node.slot.kind not in expandable or not node.has_budget:
                    node.slot.state = NodeState.DONE
                    continue
                node.slot.state = NodeState.EXPANDED
                if relation.count_field and node.slot.resource.get(relation.count_field) == 0:
                    continue
                to_expand.append((node, relation))

            listings = await bounded_gather(
                [
                    self._lister(node, relation, detail_level, fields_for(relation.child_kind))
                    for node, relation in to_expand
                ],
                self.max_concurrency,
            )

            next_frontier = []
            for (node, relation), children in zip(to_expand, listings):
                path_ids = node.ancestors | {node.slot.gid}
                for listed in children:
                    child_kind = relation.child_kind or listed.resource_type
                    if relation.child_kind is None and child_kind not in relation.accepts:
                        logger.debug(f"Skipping {child_kind} {listed.gid} in {node.slot.kind} {node.slot.gid}")
                        continue

                    reference = Reference(gid=listed.gid, resource_type=child_kind)
                    if listed.gid in path_ids:
                        logger.warning(
                            f"Cycle detected: {node.slot.kind} {node.slot.gid} -> "
                            f"{child_kind} {listed.gid}; not expanding"
                        )
                        cycles.append((node.slot.gid, listed.gid))
                        node.slot.children.append(TreeNode(reference, node.slot.level + 1, cycle=True))
                        continue

                    child_slot = TreeNode(reference, node.slot.level + 1)
                    if not relation.hydrate:
                        child_slot.resource = listed
                    node.slot.children.append(child_slot)
                    next_frontier.append(
                        TraversalNode(child_slot, node.child_budget(), path_ids, listed=listed)
                    )

            frontier = next_frontier

        return TraversalResult(root_slot, cycles)

    def _fetcher(self, node: TraversalNode, detail_level, extra_fields):
        async def fetch():
            resource = await self.source.fetch(
                node.slot.kind, node.slot.gid, detail_level, extra_fields
            )
            if node.listed is not None:
                return node.listed.merge(resource)
            return resource
        return fetch

    def _lister(self, node: TraversalNode, relation: ChildRelation, detail_level, extra_fields):
        async def list_children():
            return await self.source.list_all(
                relation.path.format(gid=node.slot.gid),
                relation.listing_kind,
                detail_level,
                extra_fields,
            )
        return list_children

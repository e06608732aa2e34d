"""Gloss graph resolution.

Reconstructs a hydrated view of the gloss graph for a set of seed IDs.
Containment is followed to unbounded depth, lateral relations exactly one
hop. Loading happens in waves, one batched fetch per containment level, so
round trips are bounded by the depth of the containment tree rather than its
node count.
"""

import logging
from typing import Iterable, Protocol

from glossa.errors import NotFoundError

from .models import LATERAL_RELATIONS, Gloss, HydratedGloss, RelationKind

logger = logging.getLogger(__name__)


class RecordSource(Protocol):
    """Anything that can batch fetch gloss records by ID."""

    def find_by_ids(self, ids: Iterable[str]) -> list[Gloss]:
        ...


class GlossResolver:
    """Resolves seed IDs into hydrated glosses.

    Example:
        resolver = GlossResolver(store)
        sentence = resolver.resolve_single(sentence_id)
        for word in sentence.contains:
            print(word.content, [root.content for root in word.contains])
    """

    def __init__(self, source: RecordSource):
        self.source = source

    def resolve_by_ids(self, seed_ids: Iterable[str]) -> dict[str, HydratedGloss]:
        """Resolve many glosses at once.

        Seeds that do not exist are omitted from the result.

        Returns:
            Mapping of seed ID to hydrated gloss. Glosses shared between
            seeds are the same object.
        """
        seeds = list(dict.fromkeys(seed_ids))
        if not seeds:
            return {}

        nodes = self._load_containment_closure(seeds)
        memo: dict[str, HydratedGloss] = {}
        return {
            seed: self._hydrate(seed, nodes, memo)
            for seed in seeds
            if seed in nodes
        }

    def resolve_single(self, gloss_id: str) -> HydratedGloss:
        """Resolve one gloss.

        Raises:
            NotFoundError: If the gloss does not exist.
        """
        resolved = self.resolve_by_ids([gloss_id])
        if gloss_id not in resolved:
            raise NotFoundError(f"Gloss {gloss_id} not found")
        return resolved[gloss_id]

    def _load_containment_closure(self, seeds: list[str]) -> dict[str, Gloss]:
        """Breadth-first load of everything reachable over ``contains``.

        The node table doubles as the visited set, so cycles terminate.
        """
        nodes: dict[str, Gloss] = {}
        missing: set[str] = set()
        frontier = set(seeds)
        waves = 0

        while frontier:
            waves += 1
            batch = [gloss_id for gloss_id in frontier if gloss_id not in nodes]
            fetched = self.source.find_by_ids(batch)
            for record in fetched:
                nodes[record.id] = record
            missing.update(set(batch) - {record.id for record in fetched})

            next_frontier: set[str] = set()
            for record in fetched:
                for child_id in record.relation_ids(RelationKind.CONTAINS):
                    if child_id not in nodes and child_id not in missing:
                        next_frontier.add(child_id)
            frontier = next_frontier

        logger.debug(
            f"Loaded {len(nodes)} glosses in {waves} waves for {len(seeds)} seeds"
        )
        return nodes

    def _hydrate(
        self, gloss_id: str, nodes: dict[str, Gloss], memo: dict[str, HydratedGloss]
    ) -> HydratedGloss:
        """Build the hydrated gloss for a loaded ID, reusing the memo.

        The gloss is memoized before its children are hydrated so that a
        containment cycle resolves to the shared, partially built object.
        """
        if gloss_id in memo:
            return memo[gloss_id]

        record = nodes[gloss_id]
        hydrated = HydratedGloss.from_record(record)
        memo[gloss_id] = hydrated

        for ref in record.contains:
            if ref.id in nodes:
                hydrated.contains.append(self._hydrate(ref.id, nodes, memo))
            else:
                hydrated.contains.append(HydratedGloss.stub(ref))

        for kind in LATERAL_RELATIONS:
            targets = hydrated.relations(kind)
            for ref in record.relations(kind):
                if ref.id in nodes:
                    targets.append(self._hydrate(ref.id, nodes, memo))
                else:
                    targets.append(HydratedGloss.stub(ref))

        return hydrated

from typing import Dict, FrozenSet, Hashable, Iterable, List, Optional, Set, Tuple

from pyfsm._private.util import NEG_INF, logaddexp

Key = Tuple[Optional[int], Hashable, bool]


class PrefixGraph:

    """Prefix graph over (pdfindex, label, is_final) keys, stored as an arena.

       Node 0 is the root and stands for the initial state. A node is
       identified by its key together with the set of nodes it is entered
       from, so every source state folded into a node is reached by exactly
       the same prefixes. Each node keeps its key, its parent nodes, the
       indices of the source states folded into it and, per parent, the
       log-sum of the link weights folded onto that edge."""

    ROOT = 0

    def __init__(self):
        self.key: List[Optional[Key]] = [None]
        self.parents: List[FrozenSet[int]] = [frozenset()]
        self.members: List[Set[int]] = [set()]
        self.weight: List[Dict[int, float]] = [{}]
        self._nodes: Dict[Tuple[Key, FrozenSet[int]], int] = {}

    def __len__(self):
        return len(self.key)

    def node(self, key: Key, parents: Iterable[int]) -> int:
        """Return the node for key entered from parents, creating it if needed."""
        parents = frozenset(parents)
        n = self._nodes.get((key, parents))
        if n is None:
            n = self._nodes[(key, parents)] = len(self.key)
            self.key.append(key)
            self.parents.append(parents)
            self.members.append(set())
            self.weight.append({})
        return n

    def add(self, parent: int, node: int, weight: float, member: int):
        """Fold a link from a state of parent into state 'member' of node."""
        self.weight[node][parent] = logaddexp(self.weight[node].get(parent, NEG_INF), weight)
        self.members[node].add(member)

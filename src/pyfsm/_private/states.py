from typing import Dict, Hashable, Iterable, List, Optional

from pyfsm._private.exceptions import StateMappingException

INIT_INDEX = 0
FINAL_INDEX = 1


class Link:
    __slots__ = ['src', 'dest', 'weight']
    def __init__(self, src: "State", dest: "State", weight: float):
        self.src = src
        self.dest = dest
        self.weight = weight

    def __repr__(self):
        return f"Link({self.src.id} -> {self.dest.id}, {self.weight})"


class State:
    __slots__ = 'index', 'id', 'pdfindex', 'label', 'links'

    def __init__(self, index: int, id: int, pdfindex: Optional[int] = None, label: Optional[Hashable] = None):
        # index is the position in the owning FSM, id is whatever the caller
        # wants it to be and may repeat across automata
        self.index = index
        self.id = id
        self.pdfindex = pdfindex
        self.label = label
        self.links: List[Link] = []

    @property
    def is_init(self) -> bool:
        return self.index == INIT_INDEX

    @property
    def is_final(self) -> bool:
        return self.index == FINAL_INDEX

    @property
    def is_sentinel(self) -> bool:
        return self.index == INIT_INDEX or self.index == FINAL_INDEX

    @property
    def is_emitting(self) -> bool:
        return self.pdfindex is not None

    @property
    def is_labeled(self) -> bool:
        return self.label is not None

    @property
    def is_nil(self) -> bool:
        """Interior state that neither emits nor carries a label."""
        return not (self.is_sentinel or self.is_emitting or self.is_labeled)

    def all_targets(self) -> list:
        """Returns the distinct states this state links to, in link order."""
        seen, targets = set(), []
        for l in self.links:
            if l.dest.index not in seen:
                seen.add(l.dest.index)
                targets.append(l.dest)
        return targets

    def __repr__(self):
        return f"State(id={self.id}, pdfindex={self.pdfindex}, label={self.label!r})"


def all_links(states: Iterable[State]):
    """Enumerate all links out of an iterable of states."""
    for state in states:
        yield from state.links


def owned(owner, state: State, operation: str) -> State:
    """Return state if it belongs to owner, else raise StateMappingException."""
    if not owner.owns(state):
        raise StateMappingException(state, operation)
    return state


def mapped(owner, smap: Dict[int, State], state: State, operation: str) -> State:
    """Look up the counterpart of one of owner's states in a table keyed on
       state index."""
    try:
        return smap[owned(owner, state, operation).index]
    except KeyError:
        raise StateMappingException(state, operation) from None

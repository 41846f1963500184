#!/usr/bin/env python

"""Traversal algorithms behind minimization"""
import logging
from collections import deque
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from pyfsm._private.exceptions import CycleDetectedException
from pyfsm._private.prefix_graph import PrefixGraph
from pyfsm._private.states import State, Link, owned, mapped

if TYPE_CHECKING:
    from .fsm import FSM

logger = logging.getLogger(__file__)


def find_cycle(fsm: 'FSM') -> Optional[List[State]]:
    """Return the states of a cycle reachable from the initial state, or None
       if there is no such cycle. Iterative DFS, a back edge closes a cycle."""

    WHITE, GRAY, BLACK = 0, 1, 2
    color = {fsm.initstate.index: GRAY}
    stack = [(fsm.initstate, iter(fsm.initstate.all_targets()))]

    while stack:
        u, it = stack[-1]
        try:
            v = owned(fsm, next(it), "find_cycle")
            c = color.get(v.index, WHITE)
            if c == WHITE:
                color[v.index] = GRAY
                stack.append((v, iter(v.all_targets())))
            elif c == GRAY:
                # back edge => the stack from v down to u is the cycle
                onstack = [s for s, _ in stack]
                start = next(i for i, s in enumerate(onstack) if s is v)
                return onstack[start:]
        except StopIteration:
            stack.pop()
            color[u.index] = BLACK
    return None


def is_acyclic(fsm: 'FSM') -> bool:
    return find_cycle(fsm) is None


def check_acyclic(fsm: 'FSM'):
    """Raise CycleDetectedException if a cycle is reachable from the initial state."""
    cycle = find_cycle(fsm)
    if cycle is not None:
        raise CycleDetectedException(s.id for s in cycle)


def push_weights(fsm: 'FSM') -> 'FSM':
    """Replace the weight of every link reachable from the initial state by
    the cumulative weight of the path that leads through it.

    The traversal is breadth-first. A link reached along several paths keeps
    the cumulative weight of the last visit. Links that cannot be reached
    from the initial state are dropped. The input must be acyclic.
    """
    newfsm = fsm.spawn()
    smap = fsm.remap_states(newfsm)
    pushed: Dict[Tuple[int, int], Tuple[State, State, float]] = {}
    queue = deque([(fsm.initstate, 0.0)])
    while queue:
        state, weight = queue.popleft()
        src = mapped(fsm, smap, state, "push_weights")
        for pos, l in enumerate(state.links):
            w = weight + l.weight
            pushed[(state.index, pos)] = (src, mapped(fsm, smap, l.dest, "push_weights"), w)
            queue.append((l.dest, w))

    for src, dest, weight in pushed.values():
        newfsm.link(src, dest, weight)
    return newfsm


def topological_order(fsm: 'FSM') -> List[State]:
    """The states reachable from the initial state, each one after all of
       its reachable predecessors (Kahn's algorithm). The initial state comes
       first. States on or behind a cycle are left out."""
    indegree = {fsm.initstate.index: 0}
    stack = [fsm.initstate]
    while stack:
        for l in stack.pop().links:
            dest = owned(fsm, l.dest, "topological_order")
            if dest.index not in indegree:
                indegree[dest.index] = 0
                stack.append(dest)
            indegree[dest.index] += 1

    order = []
    queue = deque([fsm.initstate])
    while queue:
        state = queue.popleft()
        order.append(state)
        for l in state.links:
            indegree[l.dest.index] -= 1
            if indegree[l.dest.index] == 0 and not l.dest.is_init:
                queue.append(l.dest)
    return order


def _build_graph(fsm: 'FSM') -> PrefixGraph:
    """Fold the states reachable from the initial state into a prefix graph.
       States are visited in topological order, so the nodes of all their
       predecessors are known when they are folded."""
    graph = PrefixGraph()
    order = topological_order(fsm)
    incoming: Dict[int, List[Link]] = {}
    for state in order:
        for l in state.links:
            incoming.setdefault(l.dest.index, []).append(l)

    nodes = {fsm.initstate.index: PrefixGraph.ROOT}
    for state in order[1:]:
        links = incoming[state.index]
        node = graph.node((state.pdfindex, state.label, state.is_final),
                          (nodes[l.src.index] for l in links))
        nodes[state.index] = node
        for l in links:
            graph.add(nodes[l.src.index], node, l.weight, state.index)
    return graph


def left_merge(fsm: 'FSM') -> 'FSM':
    """Merge the states that are reached from the initial state by the same
    prefixes of (pdfindex, label) pairs.

    Two states end up in the same node of the prefix graph when they have
    the same key and are entered from the same set of nodes. Each node is
    replayed as one state of the new automaton, with one link per parent
    node carrying the log-sum of the link weights folded onto it. The result
    never has more states than the input and accepts the same sequences.
    The input must be acyclic.
    """
    graph = _build_graph(fsm)
    newfsm = fsm.spawn()
    newstates = [newfsm.initstate]
    for node in range(1, len(graph)):
        pdfindex, label, final = graph.key[node]
        newstates.append(newfsm.finalstate if final else newfsm.add_state(pdfindex=pdfindex, label=label))
        for parent, weight in graph.weight[node].items():
            newfsm.link(newstates[parent], newstates[node], weight)
    logger.debug("left_merge: %d states -> %d states", len(fsm), len(newfsm))
    return newfsm

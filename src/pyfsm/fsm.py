import collections.abc
import logging
from collections import deque
from typing import Dict, Hashable, Iterable, Mapping, Optional, cast

from pyfsm._private.states import State, Link, INIT_INDEX, FINAL_INDEX, all_links, owned, mapped
from pyfsm._private import util
from pyfsm import algorithms

logger = logging.getLogger(__file__)

INIT_ID = -1
FINAL_ID = -2


class FSM:
    # ==================
    # Initializers
    # ==================

    def __init__(self):
        """Creates an automaton holding only its two sentinel states.

        The initial state always has index 0 and id INIT_ID, the final state
        index 1 and id FINAL_ID. Neither is emitting nor labeled. All
        accepted sequences run from the initial to the final state.
        """
        self.states = []
        """A list of all states, positioned by their index"""
        self._nextid = 1
        self.initstate = self._new_state(INIT_ID)
        """The initial sentinel"""
        self.finalstate = self._new_state(FINAL_ID)
        """The final sentinel"""

    def _new_state(self, id, pdfindex=None, label=None) -> State:
        state = State(len(self.states), id, pdfindex=pdfindex, label=label)
        self.states.append(state)
        return state

    def spawn(self) -> 'FSM':
        """Returns a new, empty automaton of the same class."""
        return self.__class__()

    @classmethod
    def linear(cls, sequence: Iterable[Hashable], emissions: Optional[Mapping] = None, weight: float = 0.0) -> 'FSM':
        """Create a chain that accepts exactly 'sequence'.
           Keyword arguments:
           emissions -- a mapping from label to pdf index; labels missing from it
                        give non-emitting states
           weight -- the weight put on every link of the chain
        """
        fsm = cls()
        prev = fsm.initstate
        for label in sequence:
            pdfindex = None if emissions is None else emissions.get(label)
            state = fsm.add_state(pdfindex=pdfindex, label=label)
            fsm.link(prev, state, weight)
            prev = state
        fsm.link(prev, fsm.finalstate, weight)
        return fsm

    # ==================
    # Mutation
    # ==================

    def add_state(self, id: Optional[int] = None, pdfindex: Optional[int] = None, label: Optional[Hashable] = None) -> State:
        """Add an interior state. Ids are numbered from 1 unless given."""
        if id is None:
            id = self._nextid
        self._nextid = max(self._nextid, id + 1)
        return self._new_state(id, pdfindex=pdfindex, label=label)

    def link(self, src: State, dest: State, weight: float = 0.0) -> Link:
        """Add a link from src to dest with a log-domain weight."""
        if weight != weight:
            raise ValueError(f"NaN weight on link {src!r} -> {dest!r}")
        for s in (src, dest):
            if not self.owns(s):
                raise ValueError(f"{s!r} does not belong to this automaton")
        newlink = Link(src, dest, weight)
        src.links.append(newlink)
        return newlink

    def owns(self, state: State) -> bool:
        return 0 <= state.index < len(self.states) and self.states[state.index] is state

    def remap_states(self, target: 'FSM', init: Optional[State] = None, final: Optional[State] = None,
                     keep_ids: bool = False, statefilter=None) -> Dict[int, State]:
        """Copy the interior states of self into target.

        Returns a table from state index in self to the corresponding state
        in target. The sentinels of self map onto 'init' and 'final', which
        default to the sentinels of target. Emission indices and labels are
        copied; ids only when 'keep_ids' is True. States for which
        'statefilter' returns False are left out of the table.
        """
        smap = {INIT_INDEX: target.initstate if init is None else init,
                FINAL_INDEX: target.finalstate if final is None else final}
        for s in self.states:
            if s.is_sentinel or (statefilter is not None and not statefilter(s)):
                continue
            smap[s.index] = target.add_state(id=s.id if keep_ids else None,
                                             pdfindex=s.pdfindex, label=s.label)
        return smap

    # ==================
    # Structural operations
    # ==================

    def transpose(self) -> 'FSM':
        """Reverse every link. The final state becomes the initial state.
           Interior states keep their ids."""
        newfsm = self.spawn()
        smap = self.remap_states(newfsm, init=newfsm.finalstate, final=newfsm.initstate, keep_ids=True)
        for l in self.links():
            newfsm.link(mapped(self, smap, l.dest, "transpose"), mapped(self, smap, l.src, "transpose"), l.weight)
        return newfsm

    def union(self, *others: 'FSM') -> 'FSM':
        """Merge self and others into one automaton sharing a single pair of
           sentinels. Weights are left as they are."""
        newfsm = self.spawn()
        for fsm in (self,) + others:
            smap = fsm.remap_states(newfsm)
            for l in fsm.links():
                newfsm.link(mapped(fsm, smap, l.src, "union"), mapped(fsm, smap, l.dest, "union"), l.weight)
        logger.debug("union of %d automata: %d states", len(others) + 1, len(newfsm))
        return newfsm

    def concat(self, *others: 'FSM') -> 'FSM':
        """Concatenate self and others. Each consecutive pair is joined through
           a non-emitting, unlabeled splice state."""
        newfsm = self.spawn()
        fsms = (self,) + others
        entry = newfsm.initstate
        for i, fsm in enumerate(fsms):
            exit_ = newfsm.finalstate if i == len(fsms) - 1 else newfsm.add_state()
            smap = fsm.remap_states(newfsm, init=entry, final=exit_)
            for l in fsm.links():
                newfsm.link(mapped(fsm, smap, l.src, "concat"), mapped(fsm, smap, l.dest, "concat"), l.weight)
            entry = exit_
        return newfsm

    concatenate = concat

    def normalize(self) -> 'FSM':
        """Change the weight of the links such that the exponentiated weights
           of the links leaving a state sum to one."""
        newfsm = self.spawn()
        smap = self.remap_states(newfsm)
        for s in self.states:
            total = util.logsumexp(l.weight for l in s.links)
            if total == util.NEG_INF:
                total = 0.0 # Only -inf links, leave them as they are
            for l in s.links:
                newfsm.link(mapped(self, smap, l.src, "normalize"), mapped(self, smap, l.dest, "normalize"), l.weight - total)
        return newfsm

    def coalesce(self) -> 'FSM':
        """Merge parallel links so each state has at most one link to any other
           state. The merged weight is the log-sum of the parallel weights.

           This is not determinization in the subset-construction sense: two
           links to different states with the same label stay apart."""
        newfsm = self.spawn()
        smap = self.remap_states(newfsm)
        newlinks: Dict[tuple, float] = {}
        for l in self.links():
            key = (mapped(self, smap, l.src, "coalesce").index, mapped(self, smap, l.dest, "coalesce").index)
            newlinks[key] = util.logaddexp(newlinks.get(key, util.NEG_INF), l.weight)
        for (src, dest), weight in newlinks.items():
            newfsm.link(newfsm.states[src], newfsm.states[dest], weight)
        logger.debug("coalesce: %d links -> %d links", self.arccount(), len(newlinks))
        return newfsm

    determinize = coalesce

    def minimize(self, check_cycles: bool = True) -> 'FSM':
        """Merge equivalent states to reduce the size of the automaton. Only
        states with the same pdf index and the same label can be merged.

        The pipeline pushes weights from the initial state, then merges states
        sharing their prefixes and, on the transposed automaton, states
        sharing their suffixes. A suffix merge can make new prefix merges
        possible, so both merges are repeated until the state count stops
        going down. The result is renormalized, has no more states than the
        input and minimizing it again gives the same automaton.

        The input must be acyclic. With 'check_cycles' a CycleDetectedException
        is raised up front; without it a cyclic input never terminates.
        """
        if check_cycles:
            algorithms.check_acyclic(self)
        newfsm = algorithms.push_weights(self)
        rounds = 0
        while True:
            rounds += 1
            merged = algorithms.left_merge(algorithms.left_merge(newfsm).transpose()).transpose()
            stable = len(merged) == len(newfsm)
            newfsm = merged
            if stable:
                break
        logger.debug("minimize: merging settled after %d rounds", rounds)
        newfsm = newfsm.normalize()
        logger.debug("minimize: %d states -> %d states", len(self), len(newfsm))
        return newfsm

    def remove_nil_states(self) -> 'FSM':
        """Remove all states that are non-emitting and have no label, except
        the initial and final states.

        A link into a kept state is rebuilt from the last kept state on the
        route (its root) and carries the sum of the weights along the elided
        chain, so every accepted path keeps its total weight. Routes that
        only go around a cycle of nil states are cut.
        """
        newfsm = self.spawn()
        newstates = self.remap_states(newfsm, statefilter=lambda s: not s.is_nil)
        queue = deque([(self.initstate, self.initstate, 0.0, frozenset())])
        visited = {INIT_INDEX}
        while queue:
            root, state, weight, chain = queue.popleft()
            for l in state.links:
                dest = owned(self, l.dest, "remove_nil_states")
                w = weight + l.weight
                if not dest.is_nil:
                    newfsm.link(mapped(self, newstates, root, "remove_nil_states"),
                                mapped(self, newstates, dest, "remove_nil_states"), w)
                    if dest.index not in visited:
                        visited.add(dest.index)
                        queue.append((dest, dest, 0.0, frozenset()))
                elif dest.index not in chain:
                    queue.append((root, dest, w, chain | {dest.index}))
        logger.debug("remove_nil_states: elided %d of %d states", len(self) - len(newfsm), len(self))
        return newfsm

    def compose(self, subfsms: Mapping[Hashable, 'FSM']) -> 'FSM':
        """Replace each state s by the automaton subfsms[s.label].

        The sub-automaton's initial state becomes a fresh unlabeled state that
        takes over the links into s, its final state a fresh state labeled
        s.label that takes over the links out of s. States whose label is not
        a key of 'subfsms' are copied unchanged. Link weights of self are the
        costs of entering and leaving each block and are kept as they are.
        """
        if not isinstance(subfsms, collections.abc.Mapping):
            raise TypeError(f"compose expects a mapping from label to FSM, got {type(subfsms).__name__}")
        newfsm = self.spawn()
        newsrcs = {INIT_INDEX: newfsm.initstate, FINAL_INDEX: newfsm.finalstate}
        newdests = dict(newsrcs)
        for state in self.states:
            if state.is_sentinel:
                continue
            if state.is_labeled and state.label in subfsms:
                subfsm = subfsms[state.label]
                entry, exit_ = newfsm.add_state(), newfsm.add_state(label=state.label)
                smap = subfsm.remap_states(newfsm, init=entry, final=exit_)
                for l in subfsm.links():
                    newfsm.link(mapped(subfsm, smap, l.src, "compose"), mapped(subfsm, smap, l.dest, "compose"), l.weight)
                newdests[state.index] = entry
                newsrcs[state.index] = exit_
            else:
                newstate = newfsm.add_state(pdfindex=state.pdfindex, label=state.label)
                newsrcs[state.index] = newstate
                newdests[state.index] = newstate
        for l in self.links():
            newfsm.link(mapped(self, newsrcs, l.src, "compose"), mapped(self, newdests, l.dest, "compose"), l.weight)
        logger.debug("compose: %d states -> %d states", len(self), len(newfsm))
        return newfsm

    # ==================
    # Rendering
    # ==================

    def view(self, show_weights=True) -> 'graphviz.Digraph':
        """Creates a 'graphviz.Digraph' object to view the automaton. Will
           automatically display in Jupyter.

            :param show_weights: print link weights on the edges
            :return: A Digraph object which will automatically display in Jupyter.
        """
        import graphviz
        if not util.check_graphviz_installed():
            raise EnvironmentError("Graphviz executable not found. Please install [Graphviz](https://www.graphviz.org/download/). On macOS, use `brew install graphviz`.")

        def _float_format(num):
            s = '{0:.2f}'.format(num).rstrip('0').rstrip('.')
            return '0' if s == '-0' else s

        def _node_label(s):
            if s.is_init:
                return "init"
            if s.is_final:
                return "final"
            text = str(s.id)
            if s.is_labeled:
                text += ":" + str(s.label)
            if s.is_emitting:
                text += "/" + str(s.pdfindex)
            return text

        g = graphviz.Digraph('FSM', graph_attr={"rankdir": "LR"})
        g.attr(rankdir='LR', size='8,5')
        for s in self.states:
            if s.is_final:
                g.node(str(s.index), _node_label(s), shape='doublecircle', style='filled')
            elif s.is_init:
                g.node(str(s.index), _node_label(s), shape='circle', style='filled, bold')
            else:
                g.node(str(s.index), _node_label(s), shape='circle', style='filled')
        for l in self.links():
            label = _float_format(l.weight) if show_weights else ""
            g.edge(str(l.src.index), str(l.dest.index), label=graphviz.nohtml(label))
        return g

    def render(self, filename: str = 'fsm', format: str = 'pdf', view: bool = False,
               show_weights: bool = True, directory: Optional[str] = None) -> str:
        """Draw the automaton with Graphviz and write it to 'filename' in the
           given output format. The DOT source is not kept. Returns the path
           of the written file; with 'view' it is also opened."""
        import graphviz
        digraph = cast(graphviz.Digraph, self.view(show_weights=show_weights))
        digraph.format = format
        digraph.graph_attr['margin'] = '0'
        return digraph.render(filename=filename, directory=directory, view=view, cleanup=True)

    # ==================
    # Magic Methods
    # ==================

    def __copy__(self):
        """Copy an automaton, ids included."""
        newfsm = self.spawn()
        smap = self.remap_states(newfsm, keep_ids=True)
        for l in self.links():
            newfsm.link(mapped(self, smap, l.src, "copy"), mapped(self, smap, l.dest, "copy"), l.weight)
        return newfsm

    def __len__(self):
        """Return the number of states, sentinels included."""
        return len(self.states)

    def __str__(self):
        """One tab-separated line per link: source id, target id, target label, weight."""
        st = ""
        for l in self.links():
            label = "" if l.dest.label is None else str(l.dest.label)
            st += '{}\t{}\t{}\t{}\n'.format(l.src.id, l.dest.id, label, l.weight)
        return st

    def __or__(self, other):
        """Union."""
        return self.union(other)

    def __mul__(self, other):
        """Concatenation."""
        return self.concat(other)

    # ==================
    # Utilities
    # ==================

    def links(self):
        """Generator for all links of the automaton."""
        yield from all_links(self.states)

    def arccount(self):
        """Counts number of links in the automaton."""
        return sum(len(s.links) for s in self.states)

    def is_acyclic(self):
        return algorithms.is_acyclic(self)

# ==================
# Global Functions
# ==================
def transpose(fsm: 'FSM'):
    return fsm.transpose()

def union(fsm: 'FSM', *others: 'FSM'):
    return fsm.union(*others)

def concat(fsm: 'FSM', *others: 'FSM'):
    return fsm.concat(*others)

def normalize(fsm: 'FSM'):
    return fsm.normalize()

def coalesce(fsm: 'FSM'):
    return fsm.coalesce()

determinize = coalesce

def minimize(fsm: 'FSM', check_cycles: bool = True):
    return fsm.minimize(check_cycles=check_cycles)

def remove_nil_states(fsm: 'FSM'):
    return fsm.remove_nil_states()

def compose(subfsms: Mapping[Hashable, 'FSM'], fsm: 'FSM'):
    return fsm.compose(subfsms)

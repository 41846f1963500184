class FSMException(Exception):
    """Base class for errors raised by pyfsm."""


class CycleDetectedException(FSMException):
    """The automaton has a cycle reachable from its initial state, which
       minimization cannot handle."""

    def __init__(self, cycle=None):
        self.cycle = list(cycle) if cycle is not None else []
        msg = "Automaton contains a cycle"
        if self.cycle:
            msg += ": " + " -> ".join(str(i) for i in self.cycle)
        super().__init__(msg)


class StateMappingException(FSMException, LookupError):
    """A state has no counterpart in a remapping table. This means the input
       automaton is inconsistent, e.g. one of its links points into another
       automaton."""

    def __init__(self, state, operation: str):
        self.state = state
        self.operation = operation
        super().__init__(f"{operation}: no mapping for state {state!r}; "
                         "the automaton links to a state it does not own")

from pyfsm.fsm import FSM, INIT_ID, FINAL_ID, transpose, union, concat, normalize, coalesce, determinize, minimize, remove_nil_states, compose
from pyfsm._private.states import State, Link
from pyfsm._private.exceptions import FSMException, CycleDetectedException, StateMappingException

__author__     = "Mans Hulden"
__copyright__  = "Copyright 2022"
__credits__    = ["Mans Hulden"]
__license__    = "Apache"
__version__    = "0.1"
__maintainer__ = "Mans Hulden"
__email__      = "mans.hulden@gmail.com"
__status__     = "Prototype"

"""
Exports públicos do módulo fsm/states.

Estados nomeados e suas categorias.
"""

from fsm.states.state import State, StateCategory

__all__ = [
    "State",
    "StateCategory",
]

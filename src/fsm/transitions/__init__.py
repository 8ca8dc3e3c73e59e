"""
Exports públicos do módulo fsm/transitions.

Arestas da definição: gatilho, origem opcional e destino opcional.
"""

from fsm.transitions.transition import PayloadSelector, Transition

__all__ = [
    "PayloadSelector",
    "Transition",
]

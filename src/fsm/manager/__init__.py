"""
Exports públicos do módulo fsm/manager.

Instância de máquina de estados e sua factory.
"""

from fsm.manager.machine import StateMachineInstance, create_instance

__all__ = [
    "StateMachineInstance",
    "create_instance",
]

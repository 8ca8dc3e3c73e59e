"""
Exports públicos do módulo fsm/triggers.

Gatilhos nomeados e seus tipos descritivos.
"""

from fsm.triggers.trigger import Trigger, TriggerType

__all__ = [
    "Trigger",
    "TriggerType",
]

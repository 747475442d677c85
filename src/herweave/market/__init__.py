"""Help-request market: the request registry and its state machine."""

from herweave.market.registry import RequestRegistry
from herweave.market.request_state_machine import RequestStateMachine

__all__ = ["RequestRegistry", "RequestStateMachine"]

"""Released block events for blockseq."""

import weakref
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, PrivateAttr

if TYPE_CHECKING:
    from blockseq.core.sequencer import Sequencer


class BlockEvent(BaseModel):
    """Immutable, acknowledgeable block height.

    A BlockEvent is created by a Sequencer at the moment it releases a height.
    It exposes exactly two things to the consumer:
    - the released height
    - acknowledge(), which lets the Sequencer release the next height

    The event holds only a weak reference to its Sequencer, so an outstanding
    event never keeps a torn-down Sequencer alive. Acknowledging is one-shot:
    repeated calls are no-ops.

    Attributes:
        height: The released block height (non-negative).
    """

    height: int = Field(ge=0, strict=True)

    model_config = {
        "extra": "forbid",
        "frozen": True,
    }

    _sequencer: Any = PrivateAttr(default=None)
    _acknowledged: bool = PrivateAttr(default=False)

    @classmethod
    def bind(cls, height: int, sequencer: "Sequencer") -> "BlockEvent":
        """Create an event whose acknowledgment is routed to ``sequencer``."""
        event = cls(height=height)
        event._sequencer = weakref.ref(sequencer)
        return event

    @property
    def acknowledged(self) -> bool:
        return self._acknowledged

    def acknowledge(self) -> None:
        """Signal that this height has been fully processed.

        Idempotent. Has no effect if the owning Sequencer has been closed or
        garbage collected.
        """
        if self._acknowledged:
            return
        self._acknowledged = True

        ref = self._sequencer
        sequencer = ref() if ref is not None else None
        if sequencer is not None:
            sequencer.acknowledge(self.height)

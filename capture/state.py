# =============================================================================
# Interview Snap - Client View State
# =============================================================================
# The state a user sees: the analysis transcript, the busy indicator, the
# current error message, the camera permission and whether the camera is on.
# Every change is pushed to subscribed observers immediately so the display
# tracks the stream fragment by fragment.
# =============================================================================

import logging
from dataclasses import dataclass, field, fields
from typing import Callable, FrozenSet, List

from shared.schemas import PermissionState

logger = logging.getLogger(__name__)

Observer = Callable[["ClientState", FrozenSet[str]], None]


@dataclass
class ClientState:
    """
    Observable view state of the capture client.

    Attributes:
        analysis:         Transcript of the current answer, append-only while streaming.
        is_loading:       True from submission until the stream ends or fails.
        error:            Single user-facing error message, or "".
        permission_state: Camera permission as last reported by the platform.
        camera_active:    Whether a camera feed is currently open.
    """

    analysis: str = ""
    is_loading: bool = False
    error: str = ""
    permission_state: PermissionState = PermissionState.PROMPT
    camera_active: bool = False
    _observers: List[Observer] = field(default_factory=list, repr=False, compare=False)

    def subscribe(self, observer: Observer) -> None:
        """Register a callback invoked with (state, changed_field_names)."""
        self._observers.append(observer)

    def update(self, **changes) -> None:
        """Set one or more fields and notify observers of the ones that changed."""
        known = {f.name for f in fields(self) if not f.name.startswith("_")}
        changed = set()
        for name, value in changes.items():
            if name not in known:
                raise AttributeError(f"ClientState has no field {name!r}")
            if getattr(self, name) != value:
                setattr(self, name, value)
                changed.add(name)
        if changed:
            self._notify(frozenset(changed))

    def append_analysis(self, fragment: str) -> None:
        """Append one streamed fragment to the transcript."""
        self.analysis += fragment
        self._notify(frozenset({"analysis"}))

    def _notify(self, changed: FrozenSet[str]) -> None:
        for observer in list(self._observers):
            observer(self, changed)

# karauli/selection.py

import threading
from dataclasses import dataclass
from typing import Mapping, Optional

from karauli.constants import VILLAGE_NAME_COL, SUB_DISTRICT_COL, STATE_COL


def _text(value) -> str:
    # NaN != NaN
    if value is None or value != value:
        return ""
    return str(value)


@dataclass(frozen=True)
class RegionIdentity:
    """Selected village: the name is the key used by every per-village endpoint."""
    name: str
    sub_district: str = ""
    state: str = ""

    @classmethod
    def from_attributes(cls, attributes: Mapping) -> "RegionIdentity":
        """Builds an identity from the boundary layer's feature properties."""
        name = _text(attributes.get(VILLAGE_NAME_COL))
        if not name.strip():
            raise ValueError(f"Feature has no '{VILLAGE_NAME_COL}' attribute")
        return cls(
            name=name,
            sub_district=_text(attributes.get(SUB_DISTRICT_COL)),
            state=_text(attributes.get(STATE_COL)),
        )


class SelectionController:
    """
    Owns the current selection and its token.
    Every select() allocates a token strictly greater than all previous ones,
    so results tagged with an older token can be recognised as stale.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._token = 0
        self._identity: Optional[RegionIdentity] = None

    def select(self, identity: RegionIdentity) -> int:
        with self._lock:
            self._token += 1
            self._identity = identity
            return self._token

    def clear(self) -> int:
        """Drops the selection (teardown); outstanding work becomes stale."""
        with self._lock:
            self._token += 1
            self._identity = None
            return self._token

    def current_token(self) -> int:
        with self._lock:
            return self._token

    def is_current(self, token: int) -> bool:
        return token == self.current_token()

    @property
    def current(self) -> Optional[RegionIdentity]:
        with self._lock:
            return self._identity

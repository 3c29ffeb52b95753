"""
Correlation between external message ids and local store ids.
"""
from typing import Dict, Optional


class CorrelationTable:
    """
    Maps ids the server may use (our client message id, the id the server
    later assigns) to the id the message is stored under locally.
    """

    def __init__(self):
        self._local_ids: Dict[str, str] = {}

    def register(self, external_id: str, local_id: str) -> None:
        # An alias of an alias resolves to the same local entry.
        self._local_ids[external_id] = self._local_ids.get(local_id, local_id)

    def resolve(self, external_id: str) -> Optional[str]:
        return self._local_ids.get(external_id)

    def __contains__(self, external_id: str) -> bool:
        return external_id in self._local_ids

    def __len__(self) -> int:
        return len(self._local_ids)


__all__ = ['CorrelationTable']

"""Identity resolution: name → PersonIdentity, minting ids for unseen names."""

from __future__ import annotations

import logging

from attendance.core.errors import InvalidInput
from attendance.core.identity_index import IdentityIndex
from attendance.core.names import normalize_name, split_full_name
from attendance.data.models import PersonIdentity

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Resolves names against one run's IdentityIndex.

    Repeated calls with the same name return the same id for the lifetime
    of the index, including for names first seen during this run.
    """

    def __init__(self, index: IdentityIndex) -> None:
        self._index = index

    @property
    def index(self) -> IdentityIndex:
        return self._index

    def resolve(self, full_name: str) -> PersonIdentity:
        key = normalize_name(full_name)
        if not key:
            raise InvalidInput("Cannot resolve an empty name")

        display_name = " ".join(str(full_name).split())
        person_id = self._index.name_to_id.get(key)
        if person_id is None:
            person_id = self._index.mint(display_name)
        else:
            logger.debug("Resolved '%s' to existing id %d", display_name, person_id)

        entry = self._index.directory.get(key)
        first_name = last_name = email = ""
        if entry is not None:
            display_name = entry.full_name or display_name
            first_name, last_name, email = entry.first_name, entry.last_name, entry.email
        if not first_name and not last_name:
            first_name, last_name = split_full_name(display_name)

        return PersonIdentity(
            id=person_id,
            full_name=display_name,
            first_name=first_name,
            last_name=last_name,
            email=email,
        )

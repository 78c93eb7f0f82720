"""
Manages the profiles of registered participants
"""

from collections import Counter
from typing import Iterator, Optional

import parley.metrics as metrics
from parley.config import config
from parley.decorators import with_logger
from parley.exceptions import InvalidRegistration
from parley.profiles import Profile, Tier

from .core import Service


@with_logger
class ProfileService(Service):
    def __init__(self):
        self._profiles: dict[str, Profile] = {}

    def __len__(self) -> int:
        return len(self._profiles)

    def __iter__(self) -> Iterator[Profile]:
        return self._profiles.values().__iter__()

    def __contains__(self, identity: str) -> bool:
        return identity in self._profiles

    def __getitem__(self, identity: str) -> Optional[Profile]:
        return self._profiles.get(identity)

    @staticmethod
    def validate(raw_name, raw_tier) -> tuple[str, Tier]:
        """
        Normalize the registration fields sent by a client.

        # Errors
        Raises `InvalidRegistration` if the name is empty after trimming or
        the tier is not recognized.
        """
        if not isinstance(raw_name, str) or not raw_name.strip():
            raise InvalidRegistration("A name is required to register")

        try:
            tier = Tier.from_value(raw_tier)
        except ValueError:
            raise InvalidRegistration(
                f"Unknown tier {raw_tier!r}. Choose one of "
                f"{', '.join(tier.value for tier in Tier)}"
            )

        name = raw_name.strip()[:config.NAME_MAX_LENGTH].strip()
        return name, tier

    def register(
        self,
        identity: str,
        raw_name,
        raw_tier,
        lobby_connection=None
    ) -> Profile:
        """
        Validate and install a new profile for `identity`.

        Any previous profile for the same identity is replaced, so callers
        have to release its queue entry and session first (see
        `MatchmakerService.register`).

        # Errors
        Raises `InvalidRegistration`. Nothing is changed in that case.
        """
        name, tier = self.validate(raw_name, raw_tier)

        old_profile = self._profiles.get(identity)
        if old_profile is not None and old_profile.session is not None:
            self._logger.warning(
                "Replacing %r while it is still in a session", old_profile
            )

        profile = Profile(identity, name, tier, lobby_connection)
        self._profiles[identity] = profile
        metrics.profiles_online.set(len(self._profiles))

        self._logger.info("Profile registered: %s", profile)
        return profile

    def lookup(self, identity: str) -> Optional[Profile]:
        return self._profiles.get(identity)

    def remove(self, identity: str) -> Optional[Profile]:
        profile = self._profiles.pop(identity, None)
        if profile is not None:
            metrics.profiles_online.set(len(self._profiles))
            self._logger.debug("Profile removed: %s", profile)
        return profile

    def to_dict(self) -> dict:
        states = Counter(profile.state.name for profile in self._profiles.values())
        return {
            "profiles": len(self._profiles),
            "states": dict(states),
        }

"""Registration resolver — find or create the registration an upload belongs to."""

from __future__ import annotations

import logging

from gallery.auth.models import User
from gallery.errors import AuthorizationFailure
from gallery.registry.models import Registration
from gallery.storage.store import GalleryStore

logger = logging.getLogger(__name__)


class RegistrationResolver:
    """Resolves a package id to its registration for an acting user."""

    def __init__(self, store: GalleryStore) -> None:
        self.store = store

    def resolve(self, package_id: str, user: User) -> Registration:
        """Return the registration for *package_id*, creating it if unseen.

        The lookup is case-insensitive, so ``foo.bar`` resolves to an
        existing ``Foo.Bar``. A new registration is only staged; the caller's
        commit makes it durable, and the store's uniqueness check catches a
        concurrent upload that registered the same id first.
        """
        registration = self.store.find_registration(package_id)

        if registration is not None:
            if not registration.is_owner(user):
                raise AuthorizationFailure(
                    f"The package id '{package_id}' is not available to {user.username}"
                )
            return registration

        registration = Registration(id=package_id, owners=[user])
        self.store.insert(registration)
        logger.info("Staged new registration %s owned by %s", package_id, user.key)
        return registration

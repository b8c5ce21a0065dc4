"""Ownership transfer — request, confirm and cancel co-ownership invitations.

A request moves ``none -> pending -> confirmed | cancelled``. Confirming
is two writes (add the owner, then delete the request). If the delete
fails, it is retried; the owner is never taken away again, since adding an
existing owner is already a no-op.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from gallery.auth.models import User
from gallery.auth.tokens import generate_token
from gallery.errors import AuthorizationFailure, InvariantViolation, NotFound, StorageFailure
from gallery.registry.models import ConfirmOwnershipResult, OwnerRequest, Registration
from gallery.storage.store import GalleryStore

logger = logging.getLogger(__name__)


class OwnershipWorkflow:
    """Token-gated co-ownership workflow for registrations."""

    def __init__(
        self,
        store: GalleryStore,
        token_generator: Callable[[], str] = generate_token,
        request_delete_attempts: int = 2,
    ) -> None:
        self.store = store
        self.token_generator = token_generator
        self.request_delete_attempts = request_delete_attempts

    def find_pending_request(self, registration: Registration, candidate: User) -> Optional[OwnerRequest]:
        return self.store.find_owner_request(registration, candidate.key)

    def request_transfer(
        self,
        registration: Registration,
        requesting_owner: User,
        candidate: User,
    ) -> OwnerRequest:
        """Invite *candidate* to co-own *registration*.

        Returns the existing pending request unchanged if there is one.
        """
        if not registration.is_owner(requesting_owner):
            raise AuthorizationFailure(
                f"{requesting_owner.username} does not own package '{registration.id}'"
            )

        existing = self.find_pending_request(registration, candidate)
        if existing is not None:
            return existing

        request = OwnerRequest(
            registration_key=registration.key,
            requesting_owner_key=requesting_owner.key,
            new_owner_key=candidate.key,
            confirmation_code=self.token_generator(),
        )
        self.store.insert(request)
        self.store.commit()
        logger.info(
            "Ownership of %s offered to %s by %s",
            registration.id,
            candidate.key,
            requesting_owner.key,
        )
        return request

    def confirm(self, registration: Registration, candidate: User, token: str) -> ConfirmOwnershipResult:
        """Accept a pending request with its confirmation *token*.

        A missing request and a wrong token both report ``failure``.
        """
        if registration is None:
            raise ValueError("registration is required")
        if candidate is None:
            raise ValueError("candidate is required")
        if not token:
            raise ValueError("token is required")

        if registration.is_owner(candidate):
            return ConfirmOwnershipResult.already_owner

        request = self.find_pending_request(registration, candidate)
        if request is None or request.confirmation_code != token:
            logger.info("Rejected ownership confirmation for %s on %s", candidate.key, registration.id)
            return ConfirmOwnershipResult.failure

        self.add_owner(registration, candidate)
        return ConfirmOwnershipResult.success

    def add_owner(self, registration: Registration, user: User) -> None:
        """Make *user* an owner and consume any pending request for them."""
        registration_key = registration.key
        if registration.add_owner(user):
            self.store.commit()
            logger.info("Added %s as owner of %s", user.key, registration.id)
        self._delete_request(registration_key, user)

    def remove_owner(self, registration: Registration, owner: User) -> None:
        """Remove *owner*, or cancel their pending request if they are only invited.

        The last owner of a registration can never be removed.
        """
        if len(registration.owners) == 1 and registration.is_owner(owner):
            raise InvariantViolation("You can't remove the only owner from a package.")

        pending = self.find_pending_request(registration, owner)
        if pending is not None:
            self.store.delete(pending)
            self.store.commit()
            logger.info("Cancelled ownership request for %s on %s", owner.key, registration.id)
            return

        if not registration.remove_owner(owner):
            raise NotFound(f"{owner.username} is not an owner of package '{registration.id}'")
        self.store.commit()
        logger.info("Removed %s as owner of %s", owner.key, registration.id)

    def _delete_request(self, registration_key: str, user: User) -> None:
        for attempt in range(1, self.request_delete_attempts + 1):
            # A failed commit rolls the store back, so look the request up again.
            registration = self._registration_by_key(registration_key)
            request = self.store.find_owner_request(registration, user.key) if registration else None
            if request is None:
                return
            self.store.delete(request)
            try:
                self.store.commit()
                return
            except StorageFailure:
                if attempt == self.request_delete_attempts:
                    raise
                logger.warning(
                    "Deleting consumed ownership request for %s failed (attempt %d); retrying",
                    user.key,
                    attempt,
                )

    def _registration_by_key(self, key: str) -> Optional[Registration]:
        return next((r for r in self.store.query_all(Registration) if r.key == key), None)

"""Tests for the ownership transfer workflow."""

import tempfile

import pytest

from gallery.auth.models import User
from gallery.errors import AuthorizationFailure, InvariantViolation, NotFound, StorageFailure
from gallery.registry.models import ConfirmOwnershipResult, OwnerRequest, Registration
from gallery.registry.ownership import OwnershipWorkflow
from gallery.storage.store import GalleryStore

ALICE = User(key="alice")
BOB = User(key="bob")
CAROL = User(key="carol")


class FlakyStore(GalleryStore):
    """Fails the file writes whose (1-based) sequence numbers are in ``fail_at``."""

    def __init__(self, base_dir):
        self.writes = 0
        self.fail_at: set[int] = set()
        super().__init__(base_dir)

    def _write_files(self, snapshot):
        self.writes += 1
        if self.writes in self.fail_at:
            raise OSError("disk full")
        super()._write_files(snapshot)


def _setup(store=None, **kwargs):
    store = store if store is not None else GalleryStore()
    registration = Registration(id="Foo.Bar", owners=[ALICE])
    store.insert(registration)
    store.commit()
    workflow = OwnershipWorkflow(store, token_generator=lambda: "token-123", **kwargs)
    return store, registration, workflow


def _requests(store):
    return list(store.query_all(OwnerRequest))


def test_request_creates_pending_request():
    store, reg, workflow = _setup()
    request = workflow.request_transfer(reg, ALICE, BOB)

    assert request.confirmation_code == "token-123"
    assert request.new_owner_key == "bob"
    assert request.requesting_owner_key == "alice"
    assert workflow.find_pending_request(reg, BOB) is request
    assert not reg.is_owner(BOB)


def test_repeated_request_returns_existing():
    store, reg, workflow = _setup()
    first = workflow.request_transfer(reg, ALICE, BOB)
    second = workflow.request_transfer(reg, ALICE, BOB)
    assert second is first
    assert len(_requests(store)) == 1


def test_non_owner_cannot_request():
    store, reg, workflow = _setup()
    with pytest.raises(AuthorizationFailure):
        workflow.request_transfer(reg, CAROL, BOB)
    assert _requests(store) == []


def test_wrong_token_fails():
    store, reg, workflow = _setup()
    workflow.request_transfer(reg, ALICE, BOB)

    assert workflow.confirm(reg, BOB, "wrong") == ConfirmOwnershipResult.failure
    assert not reg.is_owner(BOB)
    assert len(_requests(store)) == 1


def test_confirm_without_request_fails():
    store, reg, workflow = _setup()
    assert workflow.confirm(reg, BOB, "token-123") == ConfirmOwnershipResult.failure


def test_correct_token_adds_owner_and_consumes_request():
    store, reg, workflow = _setup()
    workflow.request_transfer(reg, ALICE, BOB)

    assert workflow.confirm(reg, BOB, "token-123") == ConfirmOwnershipResult.success
    assert reg.is_owner(BOB)
    assert _requests(store) == []


def test_second_confirm_reports_already_owner():
    store, reg, workflow = _setup()
    workflow.request_transfer(reg, ALICE, BOB)
    workflow.confirm(reg, BOB, "token-123")

    assert workflow.confirm(reg, BOB, "token-123") == ConfirmOwnershipResult.already_owner
    assert [o.key for o in reg.owners] == ["alice", "bob"]


def test_confirm_requires_token():
    store, reg, workflow = _setup()
    with pytest.raises(ValueError):
        workflow.confirm(reg, BOB, "")


def test_add_owner_is_idempotent():
    store, reg, workflow = _setup()
    workflow.add_owner(reg, BOB)
    workflow.add_owner(reg, BOB)
    assert [o.key for o in reg.owners] == ["alice", "bob"]


def test_sole_owner_cannot_be_removed():
    store, reg, workflow = _setup()
    with pytest.raises(InvariantViolation):
        workflow.remove_owner(reg, ALICE)
    assert [o.key for o in reg.owners] == ["alice"]


def test_remove_one_of_two_owners():
    store, reg, workflow = _setup()
    workflow.add_owner(reg, BOB)
    workflow.remove_owner(reg, ALICE)
    assert [o.key for o in reg.owners] == ["bob"]


def test_remove_pending_candidate_cancels_request():
    store, reg, workflow = _setup()
    workflow.request_transfer(reg, ALICE, BOB)

    workflow.remove_owner(reg, BOB)

    assert workflow.find_pending_request(reg, BOB) is None
    assert [o.key for o in reg.owners] == ["alice"]
    assert workflow.confirm(reg, BOB, "token-123") == ConfirmOwnershipResult.failure


def test_remove_unknown_user():
    store, reg, workflow = _setup()
    with pytest.raises(NotFound):
        workflow.remove_owner(reg, CAROL)


def test_consumed_request_delete_is_retried():
    with tempfile.TemporaryDirectory() as tmpdir:
        store, reg, workflow = _setup(FlakyStore(tmpdir))
        workflow.request_transfer(reg, ALICE, BOB)
        # Next write adds the owner; the one after deletes the request.
        store.fail_at = {store.writes + 2}

        assert workflow.confirm(reg, BOB, "token-123") == ConfirmOwnershipResult.success

        reloaded = GalleryStore(tmpdir)
        registration = reloaded.find_registration("Foo.Bar")
        assert registration.is_owner(BOB)
        assert list(reloaded.query_all(OwnerRequest)) == []


def test_request_delete_gives_up_after_attempts():
    with tempfile.TemporaryDirectory() as tmpdir:
        store, reg, workflow = _setup(FlakyStore(tmpdir), request_delete_attempts=2)
        workflow.request_transfer(reg, ALICE, BOB)
        store.fail_at = {store.writes + 2, store.writes + 3}

        with pytest.raises(StorageFailure):
            workflow.confirm(reg, BOB, "token-123")

        # The owner was committed before the delete failed.
        reloaded = GalleryStore(tmpdir)
        assert reloaded.find_registration("Foo.Bar").is_owner(BOB)
        assert len(list(reloaded.query_all(OwnerRequest))) == 1

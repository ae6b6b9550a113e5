"""Tests for src.core.friendship — requests, responses and gating lookups."""

import pytest

from src.core.errors import (
    AlreadyFriendsError,
    DuplicateRequestError,
    InvalidTransitionError,
    NotFoundError,
    SelfTargetError,
    UnauthorizedError,
)
from src.data.models import FriendshipStatus


class TestRequest:
    def test_request_creates_pending(self, services, alice, bob):
        friendship = services.friendships.request(alice, "bob")
        assert friendship.status is FriendshipStatus.PENDING
        assert friendship.requester_id == alice.id
        assert friendship.receiver_id == bob.id

    def test_unknown_target(self, services, alice):
        with pytest.raises(NotFoundError):
            services.friendships.request(alice, "ghost")

    def test_self_request(self, services, alice):
        with pytest.raises(SelfTargetError):
            services.friendships.request(alice, "alice")

    def test_duplicate_same_direction(self, services, alice, bob):
        services.friendships.request(alice, "bob")
        with pytest.raises(DuplicateRequestError):
            services.friendships.request(alice, "bob")

    def test_duplicate_reversed_direction(self, services, alice, bob):
        services.friendships.request(alice, "bob")
        with pytest.raises(DuplicateRequestError):
            services.friendships.request(bob, "alice")

    def test_already_friends(self, services, alice, bob, make_friends):
        make_friends(alice, bob)
        with pytest.raises(AlreadyFriendsError):
            services.friendships.request(bob, "alice")


class TestRespond:
    def test_accept(self, services, alice, bob):
        request = services.friendships.request(alice, "bob")
        accepted = services.friendships.respond(bob, request.id, accept=True)
        assert accepted.status is FriendshipStatus.ACCEPTED
        assert services.friendships.is_accepted(alice.id, bob.id)
        assert services.friendships.is_accepted(bob.id, alice.id)

    def test_reject_deletes_and_allows_fresh_request(self, services, alice, bob):
        request = services.friendships.request(alice, "bob")
        assert services.friendships.respond(bob, request.id, accept=False) is None
        assert services.friendships.relationship(alice.id, bob.id) is None

        fresh = services.friendships.request(alice, "bob")
        assert fresh.status is FriendshipStatus.PENDING
        assert fresh.id != request.id

    def test_only_receiver_may_respond(self, services, alice, bob, carol):
        request = services.friendships.request(alice, "bob")
        with pytest.raises(UnauthorizedError):
            services.friendships.respond(alice, request.id, accept=True)
        with pytest.raises(UnauthorizedError):
            services.friendships.respond(carol, request.id, accept=False)
        assert services.friendships.relationship(alice.id, bob.id).status is FriendshipStatus.PENDING

    def test_missing_request(self, services, bob):
        with pytest.raises(NotFoundError):
            services.friendships.respond(bob, 999, accept=True)

    def test_accepted_request_cannot_be_answered_again(self, services, alice, bob, make_friends):
        friendship = make_friends(alice, bob)
        with pytest.raises(InvalidTransitionError):
            services.friendships.respond(bob, friendship.id, accept=False)
        assert services.friendships.is_accepted(alice.id, bob.id)


class TestLists:
    def test_friends_incoming_outgoing(self, services, alice, bob, carol, make_friends):
        make_friends(alice, bob)
        services.friendships.request(carol, "alice")
        graph = services.friendships

        assert [u.username for u in graph.list_friends(alice)] == ["bob"]
        assert [f.requester_id for f in graph.list_incoming(alice)] == [carol.id]
        assert graph.list_outgoing(alice) == []
        assert [f.receiver_id for f in graph.list_outgoing(carol)] == [alice.id]
        assert graph.friend_ids(bob.id) == [alice.id]

    def test_not_friends_by_default(self, services, alice, bob):
        assert services.friendships.is_accepted(alice.id, bob.id) is False


class TestFindPeople:
    def test_case_insensitive_substring_excluding_self(self, services, alice, bob, carol):
        services.users.add_user("Bobby")
        found = services.friendships.find_people(alice, "BOB")
        assert [u.username for u in found] == ["Bobby", "bob"]

        assert [u.username for u in services.friendships.find_people(bob, "bob")] == ["Bobby"]

    def test_blank_query_returns_nothing(self, services, alice, bob):
        assert services.friendships.find_people(alice, None) == []
        assert services.friendships.find_people(alice, "   ") == []

    def test_results_capped(self, services, alice):
        for i in range(12):
            services.users.add_user(f"user_{i:02d}")
        found = services.friendships.find_people(alice, "user")
        assert len(found) == 10
        assert found[0].username == "user_00"

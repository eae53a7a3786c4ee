"""
Unit tests for the declarative toggle operations
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from plugins import Capability
from plugins.x.toggles import (
    TOGGLE_OPERATIONS,
    ToggleSpec,
    build_toggle_operation,
    build_toggle_operations,
)

pytestmark = [pytest.mark.unit, pytest.mark.registry]


def make_identity(user_id="42"):
    identity = MagicMock()
    identity.get = AsyncMock(return_value=user_id)
    return identity


class TestToggleTable:
    """Test the shape of the toggle declarations"""

    def test_names_are_unique(self):
        """Test that every toggle has its own name"""
        names = [spec.name for spec in TOGGLE_OPERATIONS]
        assert len(names) == len(set(names)) == 12

    def test_pairs(self):
        """Test that every POST toggle has a DELETE counterpart on the same collection"""
        posts = {spec.path_template: spec for spec in TOGGLE_OPERATIONS if spec.http_method == "POST"}
        deletes = [spec for spec in TOGGLE_OPERATIONS if spec.http_method == "DELETE"]
        assert len(posts) == len(deletes) == 6
        for spec in deletes:
            collection = spec.path_template[: -len("/{id}")]
            assert spec.path_template.endswith("/{id}")
            assert collection in posts
            assert posts[collection].parameter_name == spec.parameter_name
            assert spec.body_builder is None
            assert posts[collection].body_builder is not None

    def test_path_for(self):
        """Test that {me} and {id} are substituted"""
        spec = ToggleSpec("unlike_post", "Unlike", "DELETE", "/users/{me}/likes/{id}", "tweet_id")
        assert spec.path_for("42", "7") == "/users/42/likes/7"


class TestBuildToggleOperation:
    """Test turning declarations into operations"""

    def test_descriptor(self):
        """Test the generated descriptor and input schema"""
        spec = TOGGLE_OPERATIONS[0]
        op = build_toggle_operation(spec, MagicMock, make_identity())

        assert op.name == "like_post"
        assert op.capability == Capability.DELEGATED
        schema = op.input_schema
        assert schema["required"] == ["tweet_id"]
        assert schema["properties"]["tweet_id"]["type"] == "string"
        assert schema["properties"]["tweet_id"]["description"] == "Tweet ID"

    @pytest.mark.asyncio
    async def test_do_sends_body_to_collection(self):
        """Test that a POST toggle sends the target id in the JSON body"""
        client = MagicMock()
        client.request = AsyncMock(return_value={"data": {"following": True}})
        spec = next(s for s in TOGGLE_OPERATIONS if s.name == "follow_user")
        op = build_toggle_operation(spec, lambda: client, make_identity("42"))

        result = await op.invoke({"target_user_id": "99"})

        assert result == {"data": {"following": True}}
        client.request.assert_awaited_once_with("POST", "/users/42/following", json_body={"target_user_id": "99"})

    @pytest.mark.asyncio
    async def test_undo_deletes_member(self):
        """Test that a DELETE toggle targets the member path without a body"""
        client = MagicMock()
        client.request = AsyncMock(return_value={})
        spec = next(s for s in TOGGLE_OPERATIONS if s.name == "unmute_user")
        op = build_toggle_operation(spec, lambda: client, make_identity("42"))

        await op.invoke({"target_user_id": "99"})

        client.request.assert_awaited_once_with("DELETE", "/users/42/muting/99", json_body=None)

    @pytest.mark.asyncio
    async def test_missing_argument(self):
        """Test that the single argument is required"""
        op = build_toggle_operation(TOGGLE_OPERATIONS[0], MagicMock, make_identity())
        with pytest.raises(ValidationError):
            await op.invoke({})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", ["12 3", "../tweets", "1/2", ""])
    async def test_non_numeric_id_is_rejected(self, target):
        """Test that ids which are not numeric never reach a request path"""
        client = MagicMock()
        client.request = AsyncMock(return_value={})
        op = build_toggle_operation(TOGGLE_OPERATIONS[1], lambda: client, make_identity())

        with pytest.raises(ValidationError):
            await op.invoke({"tweet_id": target})
        client.request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_identity_is_shared(self):
        """Test that all toggles use the same identity cell"""
        client = MagicMock()
        client.request = AsyncMock(return_value={})
        identity = make_identity("42")
        ops = {op.name: op for op in build_toggle_operations(TOGGLE_OPERATIONS, lambda: client, identity)}

        await ops["like_post"].invoke({"tweet_id": "1"})
        await ops["bookmark_post"].invoke({"tweet_id": "1"})

        assert identity.get.await_count == 2

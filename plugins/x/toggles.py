# plugins/x/toggles.py
"""
Toggle operations on the caller's own account.

Likes, reposts, follows, bookmarks, blocks and mutes all come in "do" / "undo"
pairs with the same request shape: a POST to a collection under
``/users/{me}/...`` with the target id in the JSON body, and a DELETE of
``/users/{me}/.../{id}``. They are declared as data in TOGGLE_OPERATIONS and
turned into operation descriptors by build_toggle_operations.
"""

from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional

from pydantic import BaseModel, Field, create_model

from plugins import Capability, OperationDescriptor
from plugins.x.client import XDelegatedClient
from plugins.x.identity import IdentityCache

BodyBuilder = Callable[[str], Dict[str, Any]]

NUMERIC_ID_PATTERN = r"^[0-9]+$"

PARAMETER_DESCRIPTIONS = {
    "tweet_id": "Tweet ID",
    "target_user_id": "Target user ID (numeric string)",
}


class ToggleSpec(NamedTuple):
    """
    Declaration of one toggle operation.

    Attributes:
        name (str): Operation name
        description (str): Human-readable description
        http_method (str): POST for "do", DELETE for "undo"
        path_template (str): Path with {me} (caller's id) and optionally {id} fields
        parameter_name (str): Name of the single input argument
        body_builder (Optional[BodyBuilder]): Builds the JSON body from the argument
    """
    name: str
    description: str
    http_method: str
    path_template: str
    parameter_name: str
    body_builder: Optional[BodyBuilder] = None

    def path_for(self, me: str, target_id: str) -> str:
        return self.path_template.format(me=me, id=target_id)


def _tweet_body(tweet_id: str) -> Dict[str, Any]:
    return {"tweet_id": tweet_id}


def _target_user_body(user_id: str) -> Dict[str, Any]:
    return {"target_user_id": user_id}


TOGGLE_OPERATIONS = (
    ToggleSpec("like_post", "Like a tweet", "POST", "/users/{me}/likes", "tweet_id", _tweet_body),
    ToggleSpec("unlike_post", "Unlike a previously liked tweet", "DELETE", "/users/{me}/likes/{id}", "tweet_id"),
    ToggleSpec("repost", "Repost (retweet) a tweet", "POST", "/users/{me}/retweets", "tweet_id", _tweet_body),
    ToggleSpec("unrepost", "Undo a repost (unretweet)", "DELETE", "/users/{me}/retweets/{id}", "tweet_id"),
    ToggleSpec("follow_user", "Follow a user", "POST", "/users/{me}/following", "target_user_id", _target_user_body),
    ToggleSpec("unfollow_user", "Unfollow a user", "DELETE", "/users/{me}/following/{id}", "target_user_id"),
    ToggleSpec("bookmark_post", "Bookmark a tweet", "POST", "/users/{me}/bookmarks", "tweet_id", _tweet_body),
    ToggleSpec("unbookmark_post", "Remove a tweet from bookmarks", "DELETE", "/users/{me}/bookmarks/{id}", "tweet_id"),
    ToggleSpec("block_user", "Block a user", "POST", "/users/{me}/blocking", "target_user_id", _target_user_body),
    ToggleSpec("unblock_user", "Unblock a user", "DELETE", "/users/{me}/blocking/{id}", "target_user_id"),
    ToggleSpec("mute_user", "Mute a user", "POST", "/users/{me}/muting", "target_user_id", _target_user_body),
    ToggleSpec("unmute_user", "Unmute a user", "DELETE", "/users/{me}/muting/{id}", "target_user_id"),
)


def toggle_input_model(spec: ToggleSpec) -> type:
    """Create the single-argument input model for a toggle operation."""
    model_name = "".join(part.capitalize() for part in spec.name.split("_")) + "Input"
    description = PARAMETER_DESCRIPTIONS.get(spec.parameter_name, spec.parameter_name)
    return create_model(
        model_name,
        __base__=BaseModel,
        **{spec.parameter_name: (str, Field(pattern=NUMERIC_ID_PATTERN, description=description))},
    )


def build_toggle_operation(
    spec: ToggleSpec,
    client: Callable[[], XDelegatedClient],
    identity: IdentityCache,
) -> OperationDescriptor:
    """
    Turn a ToggleSpec into a delegated operation.

    Args:
        spec (ToggleSpec): The declaration
        client (Callable[[], XDelegatedClient]): Returns the signing client
        identity (IdentityCache): Resolves the caller's own user id

    Returns:
        OperationDescriptor: The operation
    """
    async def handler(data: BaseModel) -> Any:
        target_id = getattr(data, spec.parameter_name)
        me = await identity.get()
        body = spec.body_builder(target_id) if spec.body_builder else None
        return await client().request(spec.http_method, spec.path_for(me, target_id), json_body=body)

    return OperationDescriptor(
        name=spec.name,
        description=spec.description,
        input_model=toggle_input_model(spec),
        capability=Capability.DELEGATED,
        handler=handler,
    )


def build_toggle_operations(
    specs: Iterable[ToggleSpec],
    client: Callable[[], XDelegatedClient],
    identity: IdentityCache,
) -> List[OperationDescriptor]:
    return [build_toggle_operation(spec, client, identity) for spec in specs]

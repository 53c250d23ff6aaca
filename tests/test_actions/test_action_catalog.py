import pytest
from pydantic import ValidationError

from actions import ActionCatalog, ActionDescriptor, ParameterSpec, default_actions


def _dm_action(description: str = "Send a direct message") -> ActionDescriptor:
    return ActionDescriptor(
        kind="dm",
        description=description,
        target_platforms=["twitter"],
        event_kind="dm_request",
        client_id="twitter",
        parameters={
            "content": ParameterSpec(type="string", required=True),
            "userId": ParameterSpec(type="string", required=True),
            "note": ParameterSpec(type="string"),
        },
    )


def test_defaults_include_tweet_actions():
    catalog = ActionCatalog()
    assert set(catalog.get_available_actions()) == {"tweet", "tweet_thought"}
    tweet = catalog.get_action_definition("tweet")
    assert tweet.event_kind == "tweet_request"
    assert tweet.client_id == "twitter"
    assert tweet.required_parameters() == ["content"]
    assert "tweet" in catalog
    assert len(catalog) == 2


def test_explicit_empty_catalog():
    catalog = ActionCatalog([])
    assert len(catalog) == 0
    assert catalog.get_action_definition("tweet") is None


def test_register_is_last_write_wins():
    catalog = ActionCatalog()
    catalog.register_action(_dm_action())
    catalog.register_action(_dm_action("Whisper to a user"))

    assert len(catalog) == 3
    assert catalog.get_action_definition("dm").description == "Whisper to a user"


def test_available_actions_view_is_read_only():
    catalog = ActionCatalog()
    view = catalog.get_available_actions()
    with pytest.raises(TypeError):
        view["evil"] = _dm_action()  # type: ignore[index]


def test_missing_parameters_treats_empty_as_missing():
    action = _dm_action()
    assert action.missing_parameters({"content": "hi", "userId": "u1"}) == []
    assert action.missing_parameters({"content": "", "note": "x"}) == ["content", "userId"]


def test_prompt_view_lists_parameter_schema():
    view = _dm_action().prompt_view()
    assert view["description"] == "Send a direct message"
    assert view["target_platforms"] == ["twitter"]
    assert view["parameters"]["userId"] == {"type": "string", "description": "", "required": True}


def test_descriptors_are_immutable_and_validated():
    action = default_actions()[0]
    with pytest.raises(ValidationError):
        action.kind = "other"  # type: ignore[misc]
    with pytest.raises(ValidationError):
        ActionDescriptor(kind="x", description="d")  # missing event kind and client id

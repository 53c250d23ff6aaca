from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Protocol

from pydantic import BaseModel, ConfigDict, Field

from events.models import EventKind


class ParameterSpec(BaseModel):
    """Schema entry for one named action parameter."""

    model_config = ConfigDict(frozen=True)

    type: str
    description: str = ""
    required: bool = False
    example: Any = None


class ActionExample(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    action: Dict[str, Any] = Field(default_factory=dict)


class ActionDescriptor(BaseModel):
    """Capability describing how an intent turns into an outbound event."""

    model_config = ConfigDict(frozen=True)

    kind: str
    description: str
    target_platforms: List[str] = Field(default_factory=list)
    event_kind: str
    client_id: str
    parameters: Dict[str, ParameterSpec] = Field(default_factory=dict)
    examples: List[ActionExample] = Field(default_factory=list)

    def required_parameters(self) -> List[str]:
        return [name for name, spec in self.parameters.items() if spec.required]

    def missing_parameters(self, supplied: Mapping[str, Any]) -> List[str]:
        """Return required parameter names absent (or empty) in ``supplied``."""
        return [
            name
            for name in self.required_parameters()
            if supplied.get(name) in (None, "")
        ]

    def prompt_view(self) -> Dict[str, Any]:
        """Descriptor fields shown to the completion service."""
        return {
            "description": self.description,
            "target_platforms": list(self.target_platforms),
            "parameters": {
                name: spec.model_dump(exclude_none=True)
                for name, spec in self.parameters.items()
            },
        }


class ActionRegistry(Protocol):
    def get_available_actions(self) -> Mapping[str, ActionDescriptor]: ...

    def get_action_definition(self, kind: str) -> ActionDescriptor | None: ...

    def register_action(self, action: ActionDescriptor) -> None: ...


class ActionCatalog:
    """Registry mapping action kinds to descriptors.

    Registration overwrites any existing entry of the same kind.
    """

    def __init__(self, actions: List[ActionDescriptor] | None = None) -> None:
        self._actions: Dict[str, ActionDescriptor] = {}
        for action in default_actions() if actions is None else actions:
            self.register_action(action)

    def register_action(self, action: ActionDescriptor) -> None:
        """Register ``action`` under its kind (last write wins)."""
        self._actions[action.kind] = action

    def get_available_actions(self) -> Mapping[str, ActionDescriptor]:
        """Return a read-only view of every registered descriptor."""
        return MappingProxyType(self._actions)

    def get_action_definition(self, kind: str) -> ActionDescriptor | None:
        """Return descriptor registered for ``kind`` or ``None`` if missing."""
        return self._actions.get(kind)

    def __contains__(self, kind: object) -> bool:
        return kind in self._actions

    def __len__(self) -> int:
        return len(self._actions)


def default_actions() -> List[ActionDescriptor]:
    """Actions available out of the box: posting tweets."""

    context_param = ParameterSpec(
        type="object",
        description="Additional context about the tweet",
        required=False,
        example={},
    )
    reply_param = ParameterSpec(
        type="string",
        description="Tweet ID to reply to",
        required=False,
        example="1234567890",
    )
    return [
        ActionDescriptor(
            kind="tweet",
            description="Post a new tweet to Twitter.",
            target_platforms=["twitter"],
            event_kind=EventKind.TWEET_REQUEST.value,
            client_id="twitter",
            parameters={
                "content": ParameterSpec(
                    type="string",
                    description="The tweet content",
                    required=True,
                    example="Just shipped a new release of our event router!",
                ),
                "replyTo": reply_param,
                "context": context_param,
            },
            examples=[
                ActionExample(
                    description="Posting a product update",
                    action={
                        "type": EventKind.TWEET_REQUEST.value,
                        "target": "twitter",
                        "content": "New quest system released! Complete daily challenges to earn rewards.",
                        "parameters": {},
                    },
                )
            ],
        ),
        ActionDescriptor(
            kind="tweet_thought",
            description="Convert an internal thought into a tweet",
            target_platforms=["twitter"],
            event_kind=EventKind.TWEET_REQUEST.value,
            client_id="twitter",
            parameters={
                "content": ParameterSpec(
                    type="string",
                    description="The tweet content",
                    required=True,
                    example="Deep thoughts about AI...",
                ),
                "context": context_param.model_copy(
                    update={
                        "description": "Additional context about the thought",
                        "example": {"mood": "contemplative", "topics": ["AI"]},
                    }
                ),
                "replyTo": reply_param,
            },
            examples=[
                ActionExample(
                    description="Converting a philosophical thought into a tweet",
                    action={
                        "type": EventKind.TWEET_REQUEST.value,
                        "target": "twitter",
                        "content": (
                            "Neural networks learn patterns the way children do: "
                            "simple shapes first, then complex concepts. #AI"
                        ),
                        "parameters": {"mood": "contemplative", "topics": ["AI", "learning"]},
                    },
                )
            ],
        ),
    ]


__all__ = [
    "ParameterSpec",
    "ActionExample",
    "ActionDescriptor",
    "ActionRegistry",
    "ActionCatalog",
    "default_actions",
]

from .registry import (
    ActionCatalog,
    ActionDescriptor,
    ActionExample,
    ActionRegistry,
    ParameterSpec,
    default_actions,
)

__all__ = [
    "ActionCatalog",
    "ActionDescriptor",
    "ActionExample",
    "ActionRegistry",
    "ParameterSpec",
    "default_actions",
]

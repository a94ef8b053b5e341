"""Tool descriptor, tool result envelope and registry fault models."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, Field


class TextContent(BaseModel):
    """A single text block of a tool result."""
    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    """Uniform envelope returned by every tool execution.

    ``isError`` marks a recoverable, user-facing failure. It is left out of the
    wire form when unset.
    """
    model_config = {"populate_by_name": True}

    content: List[TextContent] = Field(default_factory=list)
    is_error: Optional[bool] = Field(default=None, alias="isError")

    @classmethod
    def text(cls, text: str) -> "ToolResult":
        return cls(content=[TextContent(text=text)])

    @classmethod
    def payload(cls, payload: Any) -> "ToolResult":
        """Serialize a payload the way tools report structured data."""
        return cls.text(json.dumps(payload, indent=2, ensure_ascii=False, default=str))

    @classmethod
    def error(cls, text: str) -> "ToolResult":
        return cls(content=[TextContent(text=text)], is_error=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class FaultKind(str, Enum):
    """Registry-level faults. These are protocol errors, not tool results."""
    UNKNOWN_TOOL = "unknown_tool"
    INVALID_ARGUMENTS = "invalid_arguments"


@dataclass(frozen=True)
class ToolFault:
    """Explicit fault value returned by ToolRegistry.invoke."""
    kind: FaultKind
    message: str
    tool_name: str
    errors: List[Dict[str, Any]] = field(default_factory=list)


class ToolDescriptor(ABC):
    """Contract every tool satisfies.

    Subclasses set ``name``, ``description`` and ``input_model`` and implement
    ``execute``. ``execute`` must only use the client and arguments it is given;
    descriptors are shared by every tenant and every concurrent request.
    """
    name: ClassVar[str]
    description: ClassVar[str]
    input_model: ClassVar[Type[BaseModel]]
    # Prefix used when an unexpected exception is turned into an error result
    error_label: ClassVar[str] = "Error"

    @property
    def input_schema(self) -> Dict[str, Any]:
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        return schema

    def metadata(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }

    @abstractmethod
    async def execute(self, client: Any, args: BaseModel) -> ToolResult:
        """Run the tool against one tenant's upstream client."""

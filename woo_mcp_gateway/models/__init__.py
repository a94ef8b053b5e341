from .tenant import TenantRecord
from .tool import FaultKind, TextContent, ToolDescriptor, ToolFault, ToolResult

__all__ = [
    "TenantRecord",
    "FaultKind",
    "TextContent",
    "ToolDescriptor",
    "ToolFault",
    "ToolResult",
]

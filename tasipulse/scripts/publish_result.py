"""
Outcome of publishing one article to one platform.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from tasipulse.scripts.errors import PublishError


@dataclass(frozen=True)
class PublishSuccess:
    platform: str
    post_id: str
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"success": True, "post_id": self.post_id}


@dataclass(frozen=True)
class PublishFailure:
    platform: str
    kind: str
    message: str
    detail: Optional[Any] = None
    success: bool = False

    @classmethod
    def from_error(cls, platform: str, error: Exception) -> "PublishFailure":
        return cls(
            platform=platform,
            kind=type(error).__name__,
            message=str(error),
            detail=error.detail if isinstance(error, PublishError) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "kind": self.kind, "error": self.message, "detail": self.detail}


PublishResult = Union[PublishSuccess, PublishFailure]

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Optional

from .errors import ValidationError
from .models import TODOS_COLLECTION
from .registry import FunctionRegistry
from .repositories import Collection, Repository
from .utils import utc_now

if TYPE_CHECKING:
    from .assistant import AssistantRuntime


# PUBLIC_INTERFACE
@dataclass
class ServiceContext:
    """
    Handle passed to every registered function. Holds the repository and the
    other collaborators; handlers never reach for module-level state.
    """

    repository: Repository
    registry: FunctionRegistry = field(default_factory=FunctionRegistry)
    assistant: Optional[AssistantRuntime] = None
    clock: Callable[[], datetime] = utc_now

    def now(self) -> datetime:
        return self.clock()

    def todos(self) -> Collection:
        return self.repository.collection(TODOS_COLLECTION)

    async def execute_function(self, name: str, *args: Any) -> Any:
        """
        Run a registered executable by name. Unknown names raise KeyError;
        arguments that do not fit the handler raise ValidationError.
        """
        handler = self.registry.executable(name).handler
        try:
            inspect.signature(handler).bind(self, *args)
        except TypeError as exc:
            raise ValidationError(f"Invalid arguments for {name}: {exc}") from exc
        result = handler(self, *args)
        if inspect.isawaitable(result):
            result = await result
        return result

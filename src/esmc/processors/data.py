"""Echo and JSON data processors."""

from __future__ import annotations

import copy
import json
import logging
from typing import Any, List

from ..core.models import StubResult

logger = logging.getLogger("esmc.processors")


def stub_response(param: Any = None) -> StubResult:
    """Wrap ``param`` unchanged in an ``ok`` result stamped with the current time."""
    return StubResult(data=param)


class DataProcessor:
    """JSON-oriented helpers exposed through the SDK commands."""

    def process(self, items: List[Any]) -> List[Any]:
        return items

    def transform(self, data: Any) -> Any:
        """Deep clone through a JSON round trip; non-JSON values fall back to ``deepcopy``."""
        try:
            return json.loads(json.dumps(data))
        except (TypeError, ValueError):
            logger.debug("transform: %r is not JSON-serializable, deep copying", type(data))
            return copy.deepcopy(data)

    def echo(self, param: Any = None) -> StubResult:
        return stub_response(param)

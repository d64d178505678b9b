"""
Echo model backend.

A deterministic stand-in for a model provider, used by the demo flow and
local runs. It understands two commands in the last user message:

- ``/tool <server>.<tool> {json args}`` asks for a tool call
- ``/fail <message>`` reports a provider error

Anything else is echoed back.
"""

import json
import logging

from flowengine.engine.collaborators import ModelRequest, ModelResponse, ProviderError
from flowengine.nodes.tooling import TOOL_RESULT_NUDGE, format_tool_name


logger = logging.getLogger(__name__)


class EchoModelInvoker:

    async def invoke_model(self, request: ModelRequest) -> ModelResponse:
        last = request.messages[-1] if request.messages else {}
        content = last.get("content") if isinstance(last.get("content"), str) else ""

        if last.get("role") == "user" and content == TOOL_RESULT_NUDGE:
            results = []
            for message in reversed(request.messages[:-1]):
                if message.get("role") != "tool":
                    break
                results.insert(0, message.get("content", ""))
            return ModelResponse(success=True, content="Tool result: " + "; ".join(results))

        if content.startswith("/fail"):
            return ModelResponse(
                success=False,
                error=ProviderError(
                    kind="invalid_request_error",
                    code="echo_failure",
                    message=content[len("/fail"):].strip() or "Requested failure",
                    details={"status": 400},
                ),
            )

        if content.startswith("/tool ") and request.tools:
            target, _, raw_args = content[len("/tool "):].partition(" ")
            server, _, tool = target.partition(".")
            call = {
                "id": f"call_{request.iteration}",
                "type": "function",
                "function": {
                    "name": format_tool_name(server, tool),
                    "arguments": raw_args.strip() or json.dumps({}),
                },
            }
            logger.debug(f"Echo model requesting tool {target}")
            return ModelResponse(success=True, content="", tool_calls=[call])

        return ModelResponse(success=True, content=f"Echo: {content}" if content else "Echo")

"""
Agent service client (retail mode).

The agent turns a free-form shop command into {"reply", "actions"}. Its
output is untrusted: `actions` is returned as raw data and must go through
the Action Normalizer before anything uses it.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import httpx
from pydantic import BaseModel

from command_engine.log import setup_logger

logger = setup_logger("command_engine.agent")


class AgentServiceError(Exception):
    """The agent call failed or returned something unusable."""
    pass


class AgentProposal(BaseModel):
    reply: str = ""
    actions: List[Any] = []


def parse_agent_payload(raw: Any) -> Optional[AgentProposal]:
    """
    Decode an agent response body.

    Accepts an already-decoded dict or a JSON string, tolerating text around
    the JSON object. A non-string reply becomes "" and non-list actions
    become [].
    """
    data = raw
    if isinstance(raw, str):
        data = None
        try:
            data = json.loads(raw)
        except ValueError:
            start, end = raw.find("{"), raw.rfind("}")
            if start >= 0 and end > start:
                try:
                    data = json.loads(raw[start:end + 1])
                except ValueError:
                    data = None
    if not isinstance(data, dict):
        return None
    reply = data.get("reply")
    actions = data.get("actions")
    return AgentProposal(
        reply=reply if isinstance(reply, str) else "",
        actions=actions if isinstance(actions, list) else [],
    )


class AgentClient(ABC):
    @abstractmethod
    async def propose(self, text: str) -> AgentProposal:
        """Ask the agent for a reply and a list of proposed actions."""
        ...


class HttpAgentClient(AgentClient):
    """POSTs the command to the automation endpoint."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 20.0,
        path: str = "/api/automation/retail",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._path = path
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def propose(self, text: str) -> AgentProposal:
        logger.info(f"Agent call -> {text!r}")
        try:
            resp = await self._client.post(self._path, json={"text": text})
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise AgentServiceError(str(e)) from e

        proposal = parse_agent_payload(resp.text)
        if proposal is None:
            raise AgentServiceError("Unparseable agent response")
        logger.info(f"Agent <- {len(proposal.actions)} proposed actions")
        return proposal

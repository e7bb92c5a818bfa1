"""Natural-language diagram generation.

A chat-completion endpoint turns a prompt into an unpositioned graph. The
raw graph is normalised into a :class:`DiagramDocument`; positions are left
at the origin for the layout engine to fill in.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

import httpx
from PySide6.QtCore import QObject, QRunnable, Signal

from .constants import GENERATED_NODE_SIZE
from .document import DiagramDocument
from .errors import ConfigurationError, DiagramError, MalformedResponseError, TransportError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an expert at converting natural language descriptions into structured diagram data.
When given a description, extract entities, relationships, and flow logic, then return a JSON object with this exact structure:

{
  "nodes": [
    {
      "id": "unique-id",
      "type": "rectangle" | "ellipse" | "diamond",
      "text": "Node label",
      "position": { "x": 0, "y": 0 },
      "dimensions": { "width": 180, "height": 80 }
    }
  ],
  "edges": [
    {
      "id": "unique-id",
      "from": "source-node-id",
      "to": "target-node-id",
      "label": "optional label"
    }
  ]
}

Guidelines:
- Use "rectangle" for process steps, actions, or general boxes
- Use "ellipse" for start/end points or states
- Use "diamond" for decision points or conditional logic
- Keep text concise and clear
- Don't set positions (they will be auto-calculated)
- Ensure all edge "from" and "to" IDs reference existing nodes
- Return ONLY valid JSON, no markdown or additional text"""

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")
_GENERATED_TYPES = {"rectangle", "ellipse", "diamond"}


def normalize_raw_graph(payload: Any) -> DiagramDocument:
    """Fill in the defaults a model response may omit and build a document.

    Raises:
        MalformedResponseError: If the payload has no ``nodes`` array.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("nodes"), list):
        raise MalformedResponseError("Invalid diagram data: missing nodes array")

    nodes = []
    for index, raw_node in enumerate(payload["nodes"]):
        if not isinstance(raw_node, dict):
            raise MalformedResponseError(f"Invalid diagram data: node {index} is not an object")
        node = dict(raw_node)
        if not node.get("id"):
            node["id"] = f"node-{index}"
        if node.get("type") not in _GENERATED_TYPES:
            node["type"] = "rectangle"
        if not node.get("dimensions"):
            node["dimensions"] = {"width": GENERATED_NODE_SIZE.width, "height": GENERATED_NODE_SIZE.height}
        if not node.get("position"):
            node["position"] = {"x": 0, "y": 0}
        nodes.append(node)

    raw_edges = payload.get("edges") or []
    if not isinstance(raw_edges, list):
        raise MalformedResponseError("Invalid diagram data: edges must be an array")
    edges = []
    for index, raw_edge in enumerate(raw_edges):
        if not isinstance(raw_edge, dict):
            raise MalformedResponseError(f"Invalid diagram data: edge {index} is not an object")
        edge = dict(raw_edge)
        if not edge.get("id"):
            edge["id"] = f"edge-{index}"
        edges.append(edge)

    try:
        return DiagramDocument.from_dict({"nodes": nodes, "edges": edges, "paths": []})
    except DiagramError as exc:
        raise MalformedResponseError(str(exc)) from exc


class DiagramGenerator:
    """Client for an Azure-OpenAI style chat completion endpoint."""

    def __init__(
        self,
        endpoint: Optional[str],
        api_key: Optional[str],
        client: Optional[httpx.Client] = None,
        timeout: float = 60.0,
    ):
        self._endpoint = endpoint
        self._api_key = api_key
        self._client = client if client is not None else httpx.Client(timeout=timeout)

    @property
    def is_configured(self) -> bool:
        return bool(self._endpoint and self._api_key)

    def generate(self, prompt: str) -> DiagramDocument:
        """Ask the model for a graph describing ``prompt``.

        Raises:
            ConfigurationError: If the endpoint or API key is missing.
            TransportError: If the request fails or returns a non-2xx status.
            MalformedResponseError: If the response holds no usable graph.
        """
        if not self.is_configured:
            raise ConfigurationError("Missing AI generation credentials")

        body = {
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.7,
            "max_tokens": 2000,
        }
        try:
            response = self._client.post(
                self._endpoint,
                json=body,
                headers={"Content-Type": "application/json", "api-key": self._api_key},
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"AI request failed: {exc}") from exc

        if not response.is_success:
            raise TransportError(f"AI API error: {response.status_code} - {response.text}")

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise MalformedResponseError("No response from AI") from exc
        if not content:
            raise MalformedResponseError("No response from AI")
        if not isinstance(content, str):
            raise MalformedResponseError(f"AI response content is not text: {content!r}")

        match = _JSON_BLOCK.search(content)
        json_text = match.group(0) if match else content
        try:
            payload = json.loads(json_text)
        except json.JSONDecodeError as exc:
            raise MalformedResponseError(f"AI response is not valid JSON: {exc}") from exc

        document = normalize_raw_graph(payload)
        logger.info("Generated %d node(s), %d edge(s)", len(document.nodes), len(document.edges))
        return document

    def close(self) -> None:
        self._client.close()


class GenerationSignals(QObject):
    finished = Signal(str, object)  # prompt, generated document
    failed = Signal(str, str)  # prompt, error message


class GenerationTask(QRunnable):
    """Run one generation request on a thread pool worker.

    Results are delivered through ``signals``; connections made from the GUI
    thread are queued back onto it.
    """

    def __init__(self, generator: DiagramGenerator, prompt: str):
        super().__init__()
        self.signals = GenerationSignals()
        self._generator = generator
        self._prompt = prompt

    def run(self) -> None:
        try:
            document = self._generator.generate(self._prompt)
        except DiagramError as exc:
            logger.warning("Diagram generation failed: %s", exc)
            self.signals.failed.emit(self._prompt, str(exc))
            return
        except Exception as exc:
            logger.exception("Unexpected error during diagram generation")
            self.signals.failed.emit(self._prompt, f"Unexpected error: {exc}")
            return
        self.signals.finished.emit(self._prompt, document)

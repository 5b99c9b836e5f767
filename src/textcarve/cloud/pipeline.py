"""
Hosted chunking pipelines: build a step list locally, save it remotely, run it.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import httpx

from ..core.logging import log
from ..types import Chunk
from .base import CloudClient, CloudError, PipelineNotFoundError

SLUG_PATTERN = re.compile(r"^[a-z0-9_-]+$")

PIPELINE_PATH = "/v1/pipeline"


class Pipeline:
    """A named, ordered list of process/chunk/refine steps.

    Example:
        pipeline = Pipeline("docs").process_with("text").chunk_with("recursive", chunk_size=512)
        chunks = pipeline.run(text="...")
    """

    def __init__(
        self,
        slug: str,
        description: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        client: CloudClient | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        if not SLUG_PATTERN.match(slug):
            raise ValueError(
                f"Invalid slug '{slug}'. Slug must contain only lowercase letters, "
                "numbers, dashes, and underscores."
            )
        self.client = client or CloudClient(api_key=api_key, base_url=base_url, transport=transport)
        self.slug = slug
        self.description = description
        self._steps: list[dict[str, Any]] = []
        self.is_saved = False
        self.id: str | None = None
        self.created_at: str | None = None
        self.updated_at: str | None = None

    @property
    def steps(self) -> list[dict[str, Any]]:
        return [dict(step) for step in self._steps]

    # ---------- construction from API payloads ----------
    @classmethod
    def _from_api(cls, data: dict, client: CloudClient) -> "Pipeline":
        pipeline = cls(data["slug"], description=data.get("description"), client=client)
        pipeline._mark_saved(data)
        pipeline._steps = list(data.get("steps") or [])
        return pipeline

    def _mark_saved(self, data: dict) -> None:
        self.is_saved = True
        self.id = data.get("id", self.id)
        self.created_at = data.get("created_at", self.created_at)
        self.updated_at = data.get("updated_at", self.updated_at)

    @classmethod
    def get(
        cls,
        slug: str,
        api_key: str | None = None,
        base_url: str | None = None,
        client: CloudClient | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> "Pipeline":
        """Fetch a saved pipeline.

        Raises:
            PipelineNotFoundError: if no pipeline has this slug
        """
        client = client or CloudClient(api_key=api_key, base_url=base_url, transport=transport)
        try:
            data = client.request(
                "GET", f"{PIPELINE_PATH}/{slug}", error_prefix="Failed to fetch pipeline"
            )
        except CloudError as e:
            if e.status_code == 404:
                raise PipelineNotFoundError(f"Pipeline '{slug}' not found.", 404) from e
            raise
        return cls._from_api(data, client)

    @classmethod
    def list(
        cls,
        api_key: str | None = None,
        base_url: str | None = None,
        client: CloudClient | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> list["Pipeline"]:
        client = client or CloudClient(api_key=api_key, base_url=base_url, transport=transport)
        data = client.request("GET", PIPELINE_PATH, error_prefix="Failed to list pipelines")
        return [cls._from_api(p, client) for p in data.get("pipelines", [])]

    @classmethod
    def validate(
        cls,
        steps: list[dict[str, Any]],
        api_key: str | None = None,
        base_url: str | None = None,
        client: CloudClient | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> dict[str, Any]:
        """Ask the server whether a step list is runnable.

        Returns:
            ``{"valid": bool, "errors": list[str] | None}``
        """
        client = client or CloudClient(api_key=api_key, base_url=base_url, transport=transport)
        data = client.request(
            "POST",
            f"{PIPELINE_PATH}/validate",
            {"steps": steps},
            error_prefix="Validation request failed",
        )
        return {"valid": bool(data.get("valid")), "errors": data.get("errors")}

    # ---------- builder ----------
    def _add_step(self, step_type: str, component: str, params: dict[str, Any]) -> "Pipeline":
        self._steps.append({"type": step_type, "component": component, **params})
        return self

    def chunk_with(self, chunker_type: str, **params: Any) -> "Pipeline":
        return self._add_step("chunk", chunker_type, params)

    def refine_with(self, refinery_type: str, **params: Any) -> "Pipeline":
        return self._add_step("refine", refinery_type, params)

    def process_with(self, processor_type: str, **params: Any) -> "Pipeline":
        return self._add_step("process", processor_type, params)

    # ---------- remote state ----------
    def _save(self) -> None:
        if not self._steps:
            raise ValueError("Cannot save pipeline with no steps.")
        data = self.client.request(
            "POST",
            PIPELINE_PATH,
            {"slug": self.slug, "description": self.description, "steps": self._steps},
            error_prefix="Failed to save pipeline",
        )
        self._mark_saved(data)
        log.info("cloud.pipeline.saved", slug=self.slug, steps=len(self._steps))

    def update(self, description: str | None = None) -> "Pipeline":
        payload: dict[str, Any] = {}
        if description is not None:
            payload["description"] = description
            self.description = description
        if self._steps:
            payload["steps"] = self._steps
        if not payload:
            return self
        data = self.client.request(
            "PUT", f"{PIPELINE_PATH}/{self.slug}", payload, error_prefix="Failed to update pipeline"
        )
        self.is_saved = True
        self.updated_at = data.get("updated_at", self.updated_at)
        return self

    def delete(self) -> None:
        self.client.request(
            "DELETE", f"{PIPELINE_PATH}/{self.slug}", error_prefix="Failed to delete pipeline"
        )
        self.is_saved = False
        self.id = None
        log.info("cloud.pipeline.deleted", slug=self.slug)

    def run(self, text: str | None = None, filepath: str | None = None) -> list[Chunk]:
        """Execute the pipeline on text (or a local text file), saving it first if needed."""
        if text is None and filepath is None:
            raise ValueError("Either text or filepath must be provided.")
        if filepath is not None:
            text = Path(filepath).read_text(encoding="utf-8")

        if not self.is_saved:
            self._save()

        data = self.client.request(
            "POST", f"{PIPELINE_PATH}/{self.slug}", {"text": text}, error_prefix="Pipeline run failed"
        )
        chunks = [
            Chunk(
                text=c["text"],
                start_index=c["start_index"],
                end_index=c["end_index"],
                token_count=c["token_count"],
            )
            for c in data.get("chunks", [])
        ]
        log.debug("cloud.pipeline.run", slug=self.slug, chunks=len(chunks))
        return chunks

    # ---------- local views ----------
    def to_config(self) -> list[dict[str, Any]]:
        return self.steps

    def describe(self) -> str:
        if not self._steps:
            return "Empty pipeline"
        return " -> ".join(f"{s['type']}({s['component']})" for s in self._steps)

    def reset(self) -> "Pipeline":
        self._steps = []
        return self

    def __repr__(self) -> str:
        return f"Pipeline(slug={self.slug!r}, steps={len(self._steps)}, saved={self.is_saved})"

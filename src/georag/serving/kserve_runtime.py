"""KServe custom model runtime for tenant-scoped question answering."""

from __future__ import annotations

from typing import Any

import kserve

from georag.container import Services, build_services
from georag.errors import GeoRAGError, ValidationError


class GeoRAGModel(kserve.Model):
    """KServe-compatible model that wraps the retrieval orchestrator.

    This class implements the ``predict`` interface expected by KServe
    so question answering can be deployed as an ``InferenceService``.
    """

    def __init__(self, name: str = "georag", services: Services | None = None) -> None:
        super().__init__(name)
        self.services = services
        self.ready = False

    def load(self) -> bool:
        """Wire the services (called once at startup)."""
        if self.services is None:
            self.services = build_services()
        self.ready = True
        return self.ready

    async def predict(
        self, payload: dict[str, Any], headers: dict[str, str] | None = None
    ) -> dict[str, Any]:
        """Run inference — called on every request.

        Parameters
        ----------
        payload:
            ``{"instances": [{"query": "...", "tenantId": "...", "maxResults": 5}]}``.
        headers:
            Optional HTTP headers.

        Returns
        -------
        dict
            ``{"predictions": [{"answer": "...", "sources": [...]}]}``.  A
            failed instance carries ``error`` instead of ``answer``.
        """
        predictions = []
        for instance in payload.get("instances", []):
            try:
                query, tenant_id, max_results = self._parse_instance(instance)
                answer = await self.services.retriever.answer(query, tenant_id, max_results)
            except GeoRAGError as exc:
                predictions.append({"error": exc.error, "message": str(exc), "sources": []})
                continue
            predictions.append(
                {
                    "answer": answer.text,
                    "sources": [
                        {"filename": s.filename, "similarity": s.score, "chunkId": s.chunk_id}
                        for s in answer.sources
                    ],
                }
            )
        return {"predictions": predictions}

    @staticmethod
    def _parse_instance(instance: Any) -> tuple[str, str, int]:
        if not isinstance(instance, dict):
            raise ValidationError("each instance must be a JSON object")
        try:
            max_results = int(instance.get("maxResults", 5))
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"maxResults must be an integer: {exc}") from exc
        return instance.get("query", ""), instance.get("tenantId", ""), max_results


if __name__ == "__main__":
    model = GeoRAGModel()
    model.load()
    kserve.ModelServer().start([model])

"""Vulnerability correlation client.

The correlator is an external lookup service: given package references it
returns known vulnerabilities. The default implementation talks to an
OSV-compatible ``querybatch`` endpoint over httpx.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from app.core.config import settings
from app.core.errors import DependencyDegraded
from app.services.sbom_parser import PackageRef


logger = logging.getLogger(__name__)

_BATCH_SIZE = 1000


@dataclass(frozen=True)
class Finding:
    package_name: str
    package_version: Optional[str]
    ecosystem: Optional[str]
    vulnerability_id: str
    severity: Optional[str] = None
    affected_ranges: Optional[str] = None
    fixed_version: Optional[str] = None


class VulnerabilityCorrelator(Protocol):
    async def correlate(self, packages: list[PackageRef]) -> list[Finding]:
        ...


class CorrelatorError(DependencyDegraded):
    """The correlator could not be reached or returned an unusable response."""


def _query_for(package: PackageRef) -> Optional[dict[str, Any]]:
    if package.purl and "@" in package.purl:
        return {"package": {"purl": package.purl}}
    if package.ecosystem and package.version:
        return {
            "package": {"name": package.name, "ecosystem": package.ecosystem},
            "version": package.version,
        }
    return None


class OsvCorrelator:
    """Batch lookups against an OSV-style API."""

    def __init__(self, url: str, timeout: float, client: Optional[httpx.AsyncClient] = None) -> None:
        self._url = url
        self._timeout = timeout
        self._client = client

    async def _post(self, client: httpx.AsyncClient, queries: list[dict[str, Any]]) -> list[dict[str, Any]]:
        response = await client.post(self._url, json={"queries": queries})
        response.raise_for_status()
        results = response.json().get("results")
        if not isinstance(results, list) or len(results) != len(queries):
            raise CorrelatorError("Correlator returned a malformed batch response")
        return results

    async def correlate(self, packages: list[PackageRef]) -> list[Finding]:
        queryable = [(package, _query_for(package)) for package in packages]
        queryable = [(package, query) for package, query in queryable if query is not None]
        if not queryable:
            return []

        findings: list[Finding] = []
        try:
            client = self._client or httpx.AsyncClient(timeout=self._timeout)
            try:
                for start in range(0, len(queryable), _BATCH_SIZE):
                    chunk = queryable[start : start + _BATCH_SIZE]
                    results = await self._post(client, [query for _, query in chunk])
                    for (package, _), result in zip(chunk, results):
                        for vuln in (result or {}).get("vulns") or []:
                            if not vuln.get("id"):
                                continue
                            findings.append(
                                Finding(
                                    package_name=package.name,
                                    package_version=package.version,
                                    ecosystem=package.ecosystem,
                                    vulnerability_id=str(vuln["id"]),
                                    severity=vuln.get("severity") if isinstance(vuln.get("severity"), str) else None,
                                )
                            )
            finally:
                if self._client is None:
                    await client.aclose()
        except httpx.HTTPError as exc:
            raise CorrelatorError(f"Correlator request failed: {exc.__class__.__name__}") from exc
        except ValueError as exc:
            raise CorrelatorError("Correlator returned invalid JSON") from exc

        logger.info("correlation_complete packages=%s findings=%s", len(queryable), len(findings))
        return findings


class NullCorrelator:
    """Used when correlation is disabled; reports no findings."""

    async def correlate(self, packages: list[PackageRef]) -> list[Finding]:
        return []


def get_correlator() -> VulnerabilityCorrelator:
    """FastAPI dependency returning the configured correlator."""
    if not settings.VULN_CORRELATOR_ENABLED:
        return NullCorrelator()
    return OsvCorrelator(settings.VULN_CORRELATOR_URL, timeout=settings.VULN_CORRELATOR_TIMEOUT_SECONDS)

"""Inventory extraction and format detection for SPDX and CycloneDX documents"""
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import unquote


FORMAT_SPDX = "SPDX"
FORMAT_CYCLONEDX = "CycloneDX"
FORMAT_UNKNOWN = "Unknown"

DEFAULT_TOOL = "github-action"
UNKNOWN_COMMIT = "unknown"

# purl type -> OSV ecosystem name
_PURL_ECOSYSTEMS = {
    "npm": "npm",
    "pypi": "PyPI",
    "maven": "Maven",
    "golang": "Go",
    "cargo": "crates.io",
    "nuget": "NuGet",
    "gem": "RubyGems",
    "composer": "Packagist",
    "hex": "Hex",
    "pub": "Pub",
    "swift": "SwiftURL",
    "deb": "Debian",
    "apk": "Alpine",
}


@dataclass(frozen=True)
class PackageRef:
    name: str
    version: Optional[str] = None
    ecosystem: Optional[str] = None
    purl: Optional[str] = None


@dataclass(frozen=True)
class SbomDescription:
    format: str
    spec_version: Optional[str]
    tool: str
    commit_hash: str


def ecosystem_from_purl(purl: Optional[str]) -> Optional[str]:
    """Map ``pkg:<type>/...`` to an OSV ecosystem name, or None."""
    if not purl or not purl.startswith("pkg:"):
        return None
    purl_type = purl[4:].split("/", 1)[0].lower()
    return _PURL_ECOSYSTEMS.get(purl_type)


def _purl_of_spdx_package(package: dict[str, Any]) -> Optional[str]:
    for ref in package.get("externalRefs") or []:
        if isinstance(ref, dict) and ref.get("referenceType") == "purl":
            return ref.get("referenceLocator")
    return None


def _name_from_purl(purl: str) -> Optional[str]:
    # pkg:npm/%40scope/name@1.0.0 -> @scope/name
    body = purl[4:].split("?", 1)[0].split("#", 1)[0]
    _, _, path = body.partition("/")
    path = path.rsplit("@", 1)[0]
    return unquote(path) or None


def _package_list(document: dict[str, Any]) -> list[Any]:
    packages = document.get("packages")
    if isinstance(packages, list) and packages:
        return packages
    components = document.get("components")
    if isinstance(components, list) and components:
        return components
    return []


def count_components(document: Any) -> int:
    """
    Number of entries in ``packages`` (SPDX) or ``components`` (CycloneDX).

    Whichever list is populated wins; a document with neither counts as 0.
    """
    if not isinstance(document, dict):
        return 0
    return len(_package_list(document))


def extract_packages(document: Any) -> list[PackageRef]:
    """Normalize the document inventory into package references for correlation."""
    if not isinstance(document, dict):
        return []
    refs: list[PackageRef] = []
    for entry in _package_list(document):
        if not isinstance(entry, dict):
            continue
        purl = entry.get("purl") or _purl_of_spdx_package(entry)
        name = entry.get("name")
        if not name and purl:
            name = _name_from_purl(purl)
        if not name:
            continue
        version = entry.get("version") or entry.get("versionInfo")
        refs.append(
            PackageRef(
                name=str(name),
                version=str(version) if version else None,
                ecosystem=ecosystem_from_purl(purl),
                purl=purl,
            )
        )
    return refs


def _document_tool(document: dict[str, Any]) -> Optional[str]:
    creation_info = document.get("creationInfo")
    creators = creation_info.get("creators") if isinstance(creation_info, dict) else None
    if isinstance(creators, list):
        for creator in creators:
            if isinstance(creator, str) and creator.startswith("Tool:"):
                return creator[len("Tool:"):].strip() or None
    metadata = document.get("metadata")
    tools = metadata.get("tools") if isinstance(metadata, dict) else None
    # CycloneDX 1.5 moved tools under {"components": [...]}
    if isinstance(tools, dict):
        tools = tools.get("components")
    if isinstance(tools, list):
        for tool in tools:
            if isinstance(tool, dict) and tool.get("name"):
                return str(tool["name"])
    return None


def describe(document: Any, metadata: Optional[dict[str, Any]] = None) -> SbomDescription:
    """
    Derive format, spec version, tool and commit hash.

    Explicit sync metadata wins, then the document's own fields, then sentinels;
    missing descriptive data never fails ingestion.
    """
    metadata = metadata or {}
    doc = document if isinstance(document, dict) else {}

    spec_version = None
    if doc.get("spdxVersion"):
        detected = FORMAT_SPDX
        spec_version = str(doc["spdxVersion"])
    elif doc.get("bomFormat") == FORMAT_CYCLONEDX or doc.get("specVersion"):
        detected = FORMAT_CYCLONEDX
        spec_version = str(doc["specVersion"]) if doc.get("specVersion") else None
    else:
        detected = FORMAT_UNKNOWN

    return SbomDescription(
        format=metadata.get("format") or detected,
        spec_version=spec_version,
        tool=metadata.get("source") or _document_tool(doc) or DEFAULT_TOOL,
        commit_hash=metadata.get("commitHash") or UNKNOWN_COMMIT,
    )

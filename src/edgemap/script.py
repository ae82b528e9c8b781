"""Assembly of upload-ready worker scripts from generated sitemaps."""

import json
import logging
import re
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Literal, TypeAlias

from edgemap.exceptions import TemplateError
from edgemap.models import Sitemap
from edgemap.sitemap import SITEMAP_INDEX_NAME, WorkerUnit

LOGGER = logging.getLogger(__name__)

DeploymentMode: TypeAlias = Literal["inline", "bindings"]

ROUTER_TEMPLATE = "router-worker.js"
BINDINGS_TEMPLATE = "bindings-worker.js"
SINGLE_FILE_TEMPLATE = "single-file-worker.js"

ROUTER_PLACEHOLDER = re.compile(r"\{\s*/\*\s*SITEMAPS_ROUTER\s*\*/\s*\}")
CONTENT_PLACEHOLDER = "$_CONTENT_$"
CONTENT_TYPE_PLACEHOLDER = "$_CONTENT_TYPE_$"

MANIFEST_BINDING = "SITEMAPS_MANIFEST"
INDEX_BINDING = "SITEMAP_INDEX"
INDEX_ROUTE = f"/{SITEMAP_INDEX_NAME}.xml"


@dataclass(frozen=True)
class WorkerScript:
    """A script ready for upload.

    Attributes:
        name: Script name on the upload target.
        source: Script source text.
        bindings: Upload API binding objects (``plain_text`` or ``json``).
    """

    name: str
    source: str
    bindings: list[dict[str, Any]] = field(default_factory=list)

    @property
    def size(self) -> int:
        """Total payload size in bytes (source plus text bindings)."""
        text = sum(len(b.get("text", "").encode("utf-8")) for b in self.bindings)
        return len(self.source.encode("utf-8")) + text


def binding_name(unit_index: int, chunk_index: int) -> str:
    """Name of the text binding holding a unit's n-th sitemap (a JS identifier)."""
    return f"SITEMAP_{unit_index}_{chunk_index}"


def load_template(name: str, template_dir: Path | None = None) -> str:
    """
    Load a script template from ``template_dir`` or the packaged templates.

    Raises:
        TemplateError: If the template cannot be read.
    """
    try:
        if template_dir is not None:
            return (template_dir / name).read_text(encoding="utf-8")
        return resources.files("edgemap").joinpath("templates", name).read_text(encoding="utf-8")
    except OSError as e:
        raise TemplateError(f"Could not load worker template {name}: {e}", template=name) from e


def unit_routes(unit: WorkerUnit, sitemap_index: Sitemap | None = None) -> dict[str, Sitemap]:
    """Map each route path of a unit to the sitemap served there."""
    routes: dict[str, Sitemap] = {}
    if sitemap_index is not None:
        routes[INDEX_ROUTE] = sitemap_index
    for sitemap in unit.sitemaps:
        routes[sitemap.route] = sitemap
    return routes


def render_router_script(template: str, routes: dict[str, Sitemap]) -> str:
    """
    Substitute the routing table into the router template.

    Raises:
        TemplateError: If the template does not hold exactly one router
            placeholder.
    """
    table = json.dumps({route: sitemap.xml for route, sitemap in routes.items()}, ensure_ascii=False)
    matches = len(ROUTER_PLACEHOLDER.findall(template))
    if matches == 0:
        raise TemplateError("Router placeholder not found in worker template", template=ROUTER_TEMPLATE)
    if matches > 1:
        raise TemplateError(
            f"Router placeholder appears {matches} times in worker template", template=ROUTER_TEMPLATE
        )
    return ROUTER_PLACEHOLDER.sub(lambda _: table, template, count=1)


def build_unit_script(
    script_name: str,
    unit: WorkerUnit,
    sitemap_index: Sitemap | None = None,
    mode: DeploymentMode = "inline",
    template_dir: Path | None = None,
) -> WorkerScript:
    """
    Build the script for one worker unit.

    In ``inline`` mode the routing table is embedded in the script. In
    ``bindings`` mode each sitemap becomes a text binding named
    ``SITEMAP_<unit>_<n>`` (``SITEMAP_INDEX`` for the index) and a JSON
    manifest binding maps route paths to binding names.

    Args:
        script_name: Name of the script on the upload target.
        unit: Worker unit with its sitemaps.
        sitemap_index: Sitemap index, served only by the unit that gets it.
        mode: Deployment mode.
        template_dir: Optional directory overriding the packaged templates.

    Returns:
        Upload-ready script.
    """
    if mode == "inline":
        template = load_template(ROUTER_TEMPLATE, template_dir)
        source = render_router_script(template, unit_routes(unit, sitemap_index))
        return WorkerScript(name=script_name, source=source)

    slots = [(binding_name(unit.index, n), sitemap) for n, sitemap in enumerate(unit.sitemaps, start=1)]
    if sitemap_index is not None:
        slots.insert(0, (INDEX_BINDING, sitemap_index))
    bindings: list[dict[str, Any]] = [
        {"type": "plain_text", "name": binding, "text": sitemap.xml} for binding, sitemap in slots
    ]
    manifest = {sitemap.route: binding for binding, sitemap in slots}
    bindings.append({"type": "json", "name": MANIFEST_BINDING, "json": manifest})
    source = load_template(BINDINGS_TEMPLATE, template_dir)
    return WorkerScript(name=script_name, source=source, bindings=bindings)


def build_single_file_script(
    script_name: str,
    content: str,
    content_type: str = "text/plain; charset=UTF-8",
    template_dir: Path | None = None,
) -> WorkerScript:
    """
    Build a script that serves one static document.

    Raises:
        TemplateError: If a placeholder is missing from the template.
    """
    template = load_template(SINGLE_FILE_TEMPLATE, template_dir)
    for placeholder in (CONTENT_PLACEHOLDER, CONTENT_TYPE_PLACEHOLDER):
        if placeholder not in template:
            raise TemplateError(f"Placeholder {placeholder} not found in worker template", template=SINGLE_FILE_TEMPLATE)
    # Both values become JS string literals
    source = template.replace(CONTENT_TYPE_PLACEHOLDER, json.dumps(content_type))
    source = source.replace(CONTENT_PLACEHOLDER, json.dumps(content, ensure_ascii=False))
    return WorkerScript(name=script_name, source=source)

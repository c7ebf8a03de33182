"""Change classifier: decides which components a change could visually affect."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from visreg.classifier.rules import ClassificationRules
from visreg.models.component import Classification, Component, Scope

logger = logging.getLogger(__name__)


def classify_changed_files(
    changed_files: Optional[Sequence[str]],
    catalog: Sequence[Component],
    rules: ClassificationRules | None = None,
    force_full: bool = False,
) -> Classification:
    """Map a changed-file list to a test scope over the discovered catalog.

    ``changed_files`` is None when the change history could not be read; that
    case, like ``force_full``, runs every component. Otherwise the first
    matching rule wins: all skippable -> SKIP, any broad-impact file -> CANARY,
    else the union of component matches -> TARGETED (SKIP when empty).

    A file counts as skippable only when it matches no broad-impact or
    component pattern. CANARY keeps the canary components the catalog has,
    which may be none.
    """
    rules = rules or ClassificationRules()
    catalog = list(catalog)

    if force_full:
        return Classification(
            scope=Scope.FULL, components=catalog, reason="full regression requested",
        )

    if changed_files is None:
        return Classification(
            scope=Scope.FULL, components=catalog,
            reason="changed files unavailable, running full regression",
        )

    relevant = [f for f in changed_files if not rules.is_ignorable(f)]
    if not relevant:
        return Classification(
            scope=Scope.SKIP, reason="no visually relevant file changes",
        )

    broad = [f for f in relevant if rules.is_broad_impact(f)]
    if broad:
        canary = set(rules.canary_components)
        return Classification(
            scope=Scope.CANARY,
            components=[c for c in catalog if c.id in canary],
            reason=f"{len(broad)} broad-impact file(s) changed",
            matched_files=broad,
        )

    matched_ids: set[str] = set()
    matched_files: list[str] = []
    known_ids = {c.id for c in catalog}
    for path in relevant:
        component_id = rules.component_for(path)
        if component_id is None:
            logger.debug("No component mapping for %s", path)
            continue
        if component_id not in known_ids:
            logger.debug("Component '%s' (from %s) is not in the docs catalog", component_id, path)
            continue
        matched_ids.add(component_id)
        matched_files.append(path)

    components = [c for c in catalog if c.id in matched_ids]
    if not components:
        return Classification(
            scope=Scope.SKIP,
            reason="changed components not found in docs site",
        )

    return Classification(
        scope=Scope.TARGETED,
        components=components,
        reason=f"{len(components)} affected component(s)",
        matched_files=matched_files,
    )

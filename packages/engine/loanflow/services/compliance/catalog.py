# This project was developed with assistance from AI tools.
"""Regulatory rule catalog loader.

Reads the YAML regulation catalog, validates each rule, and supports
mtime-based hot-reload so catalog edits take effect without a restart.

Loading never raises: a missing, unparseable, or malformed file yields an
empty catalog whose ``load_error`` records the ConfigurationError.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from loanflow_db.enums import Severity

from ...core.config import settings
from ...errors import ConfigurationError

logger = logging.getLogger(__name__)

CHECK_KINDS = frozenset({"presence", "prohibited", "timing", "computed"})
_FIELD_CHECKS = frozenset({"presence", "prohibited", "timing"})


@dataclass(frozen=True)
class Rule:
    """One regulatory rule. Immutable once loaded."""

    id: str
    check: str
    severity: Severity
    violation_type: str
    message: str
    description: str = ""
    field: str | None = None
    remediation: str | None = None
    threshold_days: int | None = None
    reference_field: str | None = None
    condition: str | None = None


@dataclass(frozen=True)
class Regulation:
    code: str
    name: str
    rules: tuple[Rule, ...] = ()


@dataclass(frozen=True)
class RuleCatalog:
    """Ordered, read-only set of regulations."""

    regulations: tuple[Regulation, ...] = ()
    source: Path | None = None
    load_error: ConfigurationError | None = field(default=None, compare=False)

    @property
    def is_empty(self) -> bool:
        return not self.regulations

    def list_regulations(self) -> list[Regulation]:
        return list(self.regulations)

    def get_regulation(self, code: str) -> Regulation | None:
        for regulation in self.regulations:
            if regulation.code == code:
                return regulation
        return None

    def rules_for(self, code: str) -> list[Rule]:
        regulation = self.get_regulation(code)
        return list(regulation.rules) if regulation else []

    def get_rule(self, code: str, rule_id: str) -> Rule | None:
        for rule in self.rules_for(code):
            if rule.id == rule_id:
                return rule
        return None

    def remediation_for(self, code: str, rule_id: str) -> str | None:
        rule = self.get_rule(code, rule_id)
        return rule.remediation if rule else None

    @classmethod
    def load(cls, path: Path) -> "RuleCatalog":
        """Load a catalog from disk. Failures produce an empty catalog."""
        try:
            raw = yaml.safe_load(Path(path).read_text())
            regulations = _parse_catalog(raw)
        except (OSError, yaml.YAMLError, ConfigurationError) as exc:
            error = exc if isinstance(exc, ConfigurationError) else ConfigurationError(
                f"Cannot read rule catalog {path}: {exc}"
            )
            logger.warning("Rule catalog unavailable, evaluating with no rules: %s", error)
            return cls(regulations=(), source=Path(path), load_error=error)

        logger.info("Loaded %d regulations from %s", len(regulations), path)
        return cls(regulations=regulations, source=Path(path))


def _parse_rule(code: str, raw: Any) -> Rule:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{code}: each rule must be a mapping")

    rule_id = raw.get("id")
    check = raw.get("check")
    if not rule_id:
        raise ConfigurationError(f"{code}: rule is missing 'id'")
    if check not in CHECK_KINDS:
        raise ConfigurationError(f"{code}.{rule_id}: unknown check kind {check!r}")
    if check in _FIELD_CHECKS and not raw.get("field"):
        raise ConfigurationError(f"{code}.{rule_id}: '{check}' rule requires 'field'")
    if check == "computed" and not raw.get("condition"):
        raise ConfigurationError(f"{code}.{rule_id}: computed rule requires 'condition'")

    try:
        severity = Severity(raw.get("severity", "high"))
    except ValueError as exc:
        raise ConfigurationError(f"{code}.{rule_id}: {exc}") from exc

    threshold = raw.get("threshold_days")
    if threshold is not None and (not isinstance(threshold, int) or threshold < 0):
        raise ConfigurationError(f"{code}.{rule_id}: threshold_days must be a non-negative integer")

    for required in ("violation_type", "message"):
        if not raw.get(required):
            raise ConfigurationError(f"{code}.{rule_id}: rule is missing '{required}'")

    return Rule(
        id=str(rule_id),
        check=check,
        severity=severity,
        violation_type=raw["violation_type"],
        message=raw["message"],
        description=raw.get("description", ""),
        field=raw.get("field"),
        remediation=raw.get("remediation"),
        threshold_days=threshold,
        reference_field=raw.get("reference_field"),
        condition=raw.get("condition"),
    )


def _parse_catalog(raw: Any) -> tuple[Regulation, ...]:
    """Validate the YAML tree and build immutable regulations."""
    if not isinstance(raw, dict) or not isinstance(raw.get("regulations"), list):
        raise ConfigurationError("Rule catalog must contain a 'regulations' list")

    regulations: list[Regulation] = []
    seen_codes: set[str] = set()
    for entry in raw["regulations"]:
        if not isinstance(entry, dict) or not entry.get("code"):
            raise ConfigurationError("Each regulation must be a mapping with a 'code'")
        code = str(entry["code"])
        if code in seen_codes:
            raise ConfigurationError(f"Duplicate regulation code {code}")
        seen_codes.add(code)

        rules = tuple(_parse_rule(code, r) for r in entry.get("rules") or [])
        ids = [r.id for r in rules]
        if len(ids) != len(set(ids)):
            raise ConfigurationError(f"{code}: rule ids must be unique")

        regulations.append(Regulation(code=code, name=entry.get("name", code), rules=rules))
    return tuple(regulations)


# ---------------------------------------------------------------------------
# Cached access
# ---------------------------------------------------------------------------

_cache: dict[Path, tuple[float, RuleCatalog]] = {}


def get_catalog(path: Path | None = None) -> RuleCatalog:
    """Return the cached catalog, reloading if the file's mtime has changed.

    A failed reload keeps serving the last valid catalog for that path.
    """
    catalog_path = Path(path or settings.RULE_CATALOG_PATH)
    cached = _cache.get(catalog_path)

    try:
        current_mtime = catalog_path.stat().st_mtime
    except FileNotFoundError:
        if cached is not None and not cached[1].is_empty:
            logger.warning("Rule catalog %s disappeared, using cached catalog", catalog_path)
            return cached[1]
        return RuleCatalog.load(catalog_path)

    if cached is None or current_mtime > cached[0]:
        catalog = RuleCatalog.load(catalog_path)
        if catalog.load_error is not None and cached is not None and not cached[1].is_empty:
            logger.warning("Rule catalog reload failed, keeping previous version")
            _cache[catalog_path] = (current_mtime, cached[1])
            return cached[1]
        _cache[catalog_path] = (current_mtime, catalog)
        return catalog

    return cached[1]


def clear_catalog_cache() -> None:
    _cache.clear()

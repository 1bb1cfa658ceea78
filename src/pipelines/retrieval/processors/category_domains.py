"""
Category domains for brand-anchored category relaxation.

A category domain is a hand-curated group of category names that are
acceptable substitutes for each other (all footwear subtypes, all headphone
styles...). Domains are versioned configuration data loaded from YAML and
checked against the live taxonomy at startup so drift shows up in the logs.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set

import yaml

from ..exceptions import ConfigurationError
from ..logging import RetrievalLoggerMixin


def names_match(domain_entry: str, category_name: str) -> bool:
    """Case-insensitive equality or containment in either direction."""
    a = domain_entry.strip().lower()
    b = category_name.strip().lower()
    if not a or not b:
        return False
    return a == b or a in b or b in a


@dataclass(frozen=True)
class CategoryDomain:
    """A named set of interchangeable category names."""

    name: str
    categories: FrozenSet[str]

    def matches(self, category_name: str) -> bool:
        return any(names_match(entry, category_name) for entry in self.categories)


@dataclass
class CategoryDomains(RetrievalLoggerMixin):
    """Versioned collection of category domains."""

    version: str = "0"
    domains: List[CategoryDomain] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "CategoryDomains":
        return cls(version="0", domains=[])

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategoryDomains":
        """Build from ``{"version": ..., "domains": {name: [categories...]}}``.

        Raises:
            ConfigurationError: If the structure is not as expected
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Category domains must be a mapping", invalid_values={"root": type(data).__name__})

        raw_domains = data.get("domains") or {}
        if not isinstance(raw_domains, dict):
            raise ConfigurationError(
                "'domains' must map domain names to lists of categories",
                invalid_values={"domains": type(raw_domains).__name__}
            )

        domains = []
        for name, categories in raw_domains.items():
            if not isinstance(categories, list) or not all(isinstance(c, str) for c in categories):
                raise ConfigurationError(
                    f"Domain '{name}' must be a list of category names",
                    invalid_values={str(name): categories}
                )
            domains.append(CategoryDomain(name=str(name), categories=frozenset(c.strip() for c in categories if c.strip())))

        return cls(version=str(data.get("version", "0")), domains=domains)

    @classmethod
    def from_yaml(cls, path: str) -> "CategoryDomains":
        """Load domains from a YAML file.

        Raises:
            ConfigurationError: If the file is missing or invalid
        """
        config_file = Path(path)
        if not config_file.exists():
            raise ConfigurationError(f"Category domains file not found: {path}", missing_keys=["category_domains_path"])

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in category domains file {path}: {e}") from e

        return cls.from_dict(data)

    def related_categories(self, requested: Iterable[str]) -> Set[str]:
        """All categories of the first domain matching each requested name."""
        expanded: Set[str] = set()
        for name in requested:
            for domain in self.domains:
                if domain.matches(name):
                    expanded.update(domain.categories)
                    break
        return expanded

    def validate_against(self, catalog_categories: Iterable[str]) -> Dict[str, List[str]]:
        """Report domain entries that do not exist in the catalog taxonomy.

        Unknown entries are harmless at query time, so they are logged as
        warnings rather than raised.

        Returns:
            Mapping of domain name to its unknown category names
        """
        known = {name.strip().lower() for name in catalog_categories}
        unknown: Dict[str, List[str]] = {}

        for domain in self.domains:
            missing = sorted(c for c in domain.categories if c.lower() not in known)
            if missing:
                unknown[domain.name] = missing

        if unknown:
            self.logger.warning(
                f"Category domains v{self.version} reference {sum(len(v) for v in unknown.values())} "
                f"categories missing from the catalog",
                extra={'extra_fields': {'domains_version': self.version, 'unknown_categories': unknown}}
            )
        else:
            self.logger.info(f"Category domains v{self.version} validated against catalog")

        return unknown


def load_category_domains(path: Optional[str]) -> CategoryDomains:
    """Load domains from ``path``; an unset path means no relaxation."""
    if not path:
        return CategoryDomains.empty()
    return CategoryDomains.from_yaml(path)

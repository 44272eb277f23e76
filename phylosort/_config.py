"""
_config.py
==========
Sorting configuration.

``SortConfig`` is an immutable pydantic model passed explicitly to the
algorithms that need it (clade matching, batch sorting).  Nothing in phylosort
reads configuration from module-level state.

Properties file format
----------------------
``SortConfig.from_properties(path)`` reads the key/value files used by the
PhyloSort tool::

    # comment
    phylosort.mode = exclusive
    phylosort.minimum.group.size = 2
    phylosort.on.match.action : copy

Keys and their fields are listed in ``PROPERTY_KEYS``.  Unknown keys are
ignored; invalid values raise ``ConfigError``.
"""

import logging
import re
from typing import Dict, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from phylosort._exceptions import ConfigError


logger = logging.getLogger(__name__)

# property key -> SortConfig field
PROPERTY_KEYS: Dict[str, str] = {
    "phylosort.pattern": "taxon_pattern",
    "phylosort.filename.pattern": "filename_pattern",
    "phylosort.query.required": "query_required",
    "phylosort.root.outgroup": "root_outgroup",
    "phylosort.mode": "exclusive",
    "phylosort.minimum.group.size": "minimum_group_size",
    "phylosort.minimum.number.taxa": "minimum_taxa",
    "phylosort.maximum.number.taxa": "maximum_taxa",
    "phylosort.minimum.bootstrap.support": "minimum_support",
    "phylosort.maximum.average.number.copies": "maximum_average_copies",
    "phylosort.on.match.action": "on_match",
}

_YES = {"yes", "true", "1"}
_NO = {"no", "false", "0"}


class SortConfig(BaseModel):
    """Parameters of a clade-matching / tree-sorting run."""

    exclusive: bool = Field(
        default=False,
        description=(
            "Exclusive mode: the clade must be rooted at the LCA of every "
            "matching leaf. Inclusive mode accepts the lowest qualifying "
            "ancestor of any matching leaf."
        ),
    )
    minimum_group_size: int = Field(
        default=1,
        ge=1,
        description="Minimum number of leaves each taxon group needs in an inclusive match.",
    )
    query_required: bool = Field(
        default=False,
        description="Discard matches whose subtree does not hold the query taxon.",
    )
    taxon_pattern: str = Field(
        default="(.+)",
        description="Regular expression matched against a leaf label; group 1 is the taxon.",
    )
    filename_pattern: str = Field(
        default=r"(.+)\.tre$",
        description="Regular expression selecting tree files; group 1 is the query taxon.",
    )
    root_outgroup: bool = Field(
        default=True,
        description="Reroot each tree at the first leaf outside the taxon groups before matching.",
    )
    minimum_taxa: int = Field(
        default=-1, description="Skip trees with fewer leaves (-1 disables)."
    )
    maximum_taxa: int = Field(
        default=-1, description="Skip trees with more leaves (-1 disables)."
    )
    minimum_support: float = Field(
        default=-1.0,
        description="Minimum support value on a matched node (-1 disables).",
    )
    maximum_average_copies: float = Field(
        default=-1.0,
        description="Skip trees averaging more leaves per taxon than this (-1 disables).",
    )
    on_match: Literal["copy", "move", "count"] = Field(
        default="count",
        description="What to do with a matching tree file.",
    )

    model_config = {"frozen": True}

    @field_validator("taxon_pattern", "filename_pattern")
    @classmethod
    def validate_pattern(cls, value: str) -> str:
        """Patterns must compile and define a capture group."""
        try:
            compiled = re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid regular expression {value!r}: {exc}") from exc
        if compiled.groups < 1:
            raise ValueError(f"pattern {value!r} must define a capture group")
        return value

    @property
    def mode(self) -> str:
        return "exclusive" if self.exclusive else "inclusive"

    @property
    def taxon_regex(self) -> "re.Pattern":
        return re.compile(self.taxon_pattern)

    @property
    def filename_regex(self) -> "re.Pattern":
        return re.compile(self.filename_pattern)

    # ------------------------------------------------------------------ #
    # Properties files                                                     #
    # ------------------------------------------------------------------ #

    @classmethod
    def from_mapping(cls, properties: Dict[str, str]) -> "SortConfig":
        """
        Build a config from raw property strings keyed as in ``PROPERTY_KEYS``.

        Raises
        ------
        ConfigError   if a value cannot be converted or fails validation.
        """
        values = {}
        for key, raw in properties.items():
            field = PROPERTY_KEYS.get(key)
            if field is None:
                logger.debug("Ignoring unknown configuration key %s", key)
                continue
            values[field] = _convert(key, field, raw.strip())
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc

    @classmethod
    def from_properties(cls, path) -> "SortConfig":
        """
        Read a properties file (``key = value`` or ``key: value`` lines,
        ``#``/``!`` comments).

        Raises
        ------
        ConfigError   for a malformed line or an invalid value.
        OSError       if the file cannot be read.
        """
        properties = {}
        with open(path) as handle:
            for lineno, line in enumerate(handle, start=1):
                line = line.strip()
                if not line or line[0] in "#!":
                    continue
                match = re.match(r"([^=:\s]+)\s*[=:]\s*(.*)$", line)
                if match is None:
                    raise ConfigError(f"{path}:{lineno}: expected 'key = value'")
                properties[match.group(1)] = match.group(2)
        config = cls.from_mapping(properties)
        logger.info("Loaded %s configuration from %s", config.mode, path)
        return config

    def to_properties(self) -> str:
        """Render the configuration in the properties file format."""
        lines = []
        for key, field in PROPERTY_KEYS.items():
            value = getattr(self, field)
            if field == "exclusive":
                text = self.mode
            elif isinstance(value, bool):
                text = "yes" if value else "no"
            else:
                text = str(value)
            lines.append(f"{key} = {text}")
        return "\n".join(lines) + "\n"


def _convert(key: str, field: str, raw: str):
    """Turn one property string into the value type of *field*."""
    lowered = raw.lower()
    if field == "exclusive":
        if lowered not in ("exclusive", "inclusive"):
            raise ConfigError(f"{key}: expected 'exclusive' or 'inclusive', got {raw!r}")
        return lowered == "exclusive"
    if field in ("query_required", "root_outgroup"):
        if lowered in _YES:
            return True
        if lowered in _NO:
            return False
        raise ConfigError(f"{key}: expected 'yes' or 'no', got {raw!r}")
    if field in ("minimum_group_size", "minimum_taxa", "maximum_taxa"):
        try:
            return int(raw)
        except ValueError:
            raise ConfigError(f"{key}: expected an integer, got {raw!r}") from None
    if field in ("minimum_support", "maximum_average_copies"):
        try:
            return float(raw)
        except ValueError:
            raise ConfigError(f"{key}: expected a number, got {raw!r}") from None
    if field == "on_match":
        return lowered
    return raw

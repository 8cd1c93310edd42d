"""Run configuration of the denoising pipeline.

Copyright © 2025 Pixelgen Technologies AB.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import pydantic
from pydantic.alias_generators import to_camel

from denoiseq.config.utils import load_yaml_file
from denoiseq.exception import ConfigurationError
from denoiseq.types import ChimeraMode, PathType

try:
    from typing import Self
except ImportError:
    from typing_extensions import Self

logger = logging.getLogger(__name__)


class DenoiseConfig(pydantic.BaseModel):
    """Options recognized by all stages of the pipeline.

    Options can be given by their python name or by their camelCase alias,
    e.g. `min_cluster_abundance` or `minClusterAbundance`.
    """

    model_config = pydantic.ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=pydantic.AliasGenerator(
            validation_alias=to_camel
        ),
    )

    # denoising
    min_cluster_abundance: int = pydantic.Field(
        1,
        ge=0,
        description="Unique sequences with an abundance above this value seed the initial clusters.",
    )
    significance_threshold: float = pydantic.Field(
        1e-40,
        gt=0,
        le=1,
        description=(
            "Abundance p-value below which a unique sequence is considered too "
            "abundant to be an error of its best cluster and founds a new cluster. "
            "The default only splits off variants with many copies; a handful of "
            "copies of a Q40 substitution next to a 100 read cluster needs a "
            "threshold around 1e-6."
        ),
    )
    max_iterations: int = pydantic.Field(
        10, ge=1, description="The maximum number of reassign and refit iterations."
    )
    max_quality: int = pydantic.Field(
        41, ge=1, le=93, description="The highest quality score stratified by the error model."
    )
    error_prior_weight: float = pydantic.Field(
        1.0,
        ge=0,
        description="Weight of the Phred prior when fitting the error model from observed transitions.",
    )

    # pair merging
    min_overlap: int = pydantic.Field(
        12, ge=1, description="The minimum overlap between forward and reverse reads."
    )
    max_mismatch_rate: float = pydantic.Field(
        0.0,
        ge=0,
        lt=1,
        description="The largest allowed fraction of mismatches in the overlap.",
    )

    # chimera removal
    chimera_ratio: float = pydantic.Field(
        2.0,
        ge=1,
        description="Parents must be at least this many times as abundant as a chimera.",
    )
    chimera_mode: ChimeraMode = pydantic.Field(
        "consensus", description="Decide on chimeras per sample or by consensus."
    )
    chimera_max_mismatch: int = pydantic.Field(
        0,
        ge=0,
        description="The number of mismatches tolerated between a chimera and its parents.",
    )

    # quality filtering
    trunc_len_forward: Optional[int] = pydantic.Field(
        None, ge=1, description="Truncate forward reads to this length."
    )
    trunc_len_reverse: Optional[int] = pydantic.Field(
        None, ge=1, description="Truncate reverse reads to this length."
    )
    trunc_q: int = pydantic.Field(
        2, ge=0, description="Truncate reads at the first base with a quality at or below this value."
    )
    max_n: int = pydantic.Field(
        0, ge=0, description="Discard reads with more ambiguous bases than this."
    )
    max_ee: Optional[float] = pydantic.Field(
        None, gt=0, description="Discard reads with more expected errors than this."
    )
    min_len: int = pydantic.Field(
        20, ge=1, description="Discard reads shorter than this after truncation."
    )

    # tracking
    min_output_reads: int = pydantic.Field(
        0,
        ge=0,
        description="Flag samples that have fewer merged reads than this.",
    )

    @pydantic.model_validator(mode="after")
    def _check_truncation(self) -> Self:
        for name in ("trunc_len_forward", "trunc_len_reverse"):
            value = getattr(self, name)
            if value is not None and value < self.min_len:
                raise ValueError(
                    f"{name} ({value}) is shorter than min_len ({self.min_len})"
                )
        return self

    @classmethod
    def create(cls, **options: Any) -> Self:
        """Validate the options and return a new configuration.

        :param options: configuration options by name or alias
        :returns: the validated configuration
        :raises ConfigurationError: if any option is invalid
        """
        try:
            return cls.model_validate(options)
        except pydantic.ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc

    @classmethod
    def from_yaml(cls, path: PathType) -> Self:
        """Load a configuration from a yaml file.

        :param path: the path to the yaml file
        :returns: the validated configuration
        :raises ConfigurationError: if the file is not a mapping or any option is invalid
        """
        logger.debug("Loading configuration from %s", path)
        data = load_yaml_file(path)
        if data is None:
            data = {}

        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} does not contain a mapping of options")

        return cls.create(**data)

    def updated(self, **options: Any) -> Self:
        """Return a copy with some options replaced and validated again."""
        data = self.model_dump()
        data.update({k: v for k, v in options.items() if v is not None})
        return type(self).create(**data)

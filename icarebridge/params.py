"""Typed parameter sets for the three public operations.

Field names are snake_case; camelCase aliases (``applyAgeStart``) are accepted
as well. Defaults are applied here, before anything is encoded.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

# A value shared by every individual, or one value per individual
Number = int | float
PerIndividual = Number | list[Number]

DEFAULT_NUM_IMPUTATIONS = 5
DEFAULT_SEED = 1234
DEFAULT_NUMBER_OF_PERCENTILES = 10
DEFAULT_DATASET_NAME = "Example dataset"
DEFAULT_MODEL_NAME = "Example risk prediction model"


class ParameterSet(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class _ReturnFlags(ParameterSet):
    return_linear_predictors: bool = False
    return_reference_risks: bool = False

    @field_validator("return_linear_predictors", "return_reference_risks", mode="before")
    @classmethod
    def _absent_is_false(cls, value: Any) -> Any:
        return False if value is None else value


class AbsoluteRiskParameters(_ReturnFlags):
    """Build an absolute risk model and apply it to the supplied profiles."""
    apply_age_start: PerIndividual | None = None
    apply_age_interval_length: PerIndividual | None = None
    model_disease_incidence_rates_url: str | None = None
    model_competing_incidence_rates_url: str | None = None
    model_covariate_formula_url: str | None = None
    model_log_relative_risk_url: str | None = None
    model_reference_dataset_url: str | None = None
    model_reference_dataset_weights_variable_name: str | None = None
    model_snp_info_url: str | None = None
    model_family_history_variable_name: str | None = None
    num_imputations: int | None = DEFAULT_NUM_IMPUTATIONS
    apply_covariate_profile_url: str | None = None
    apply_snp_profile_url: str | None = None
    seed: int | None = DEFAULT_SEED


class SplitIntervalParameters(_ReturnFlags):
    """Absolute risk with different model inputs before and after an age cut-point.

    Every ``*_after_cutpoint`` value left unset falls back, inside the guest, to its
    ``*_before_cutpoint`` counterpart.
    """
    apply_age_start: PerIndividual | None = None
    apply_age_interval_length: PerIndividual | None = None
    model_disease_incidence_rates_url: str | None = None
    model_competing_incidence_rates_url: str | None = None
    model_covariate_formula_before_cutpoint_url: str | None = None
    model_covariate_formula_after_cutpoint_url: str | None = None
    model_log_relative_risk_before_cutpoint_url: str | None = None
    model_log_relative_risk_after_cutpoint_url: str | None = None
    model_reference_dataset_before_cutpoint_url: str | None = None
    model_reference_dataset_after_cutpoint_url: str | None = None
    model_reference_dataset_weights_variable_name_before_cutpoint: str | None = None
    model_reference_dataset_weights_variable_name_after_cutpoint: str | None = None
    model_snp_info_url: str | None = None
    model_family_history_variable_name_before_cutpoint: str | None = None
    model_family_history_variable_name_after_cutpoint: str | None = None
    apply_covariate_profile_before_cutpoint_url: str | None = None
    apply_covariate_profile_after_cutpoint_url: str | None = None
    apply_snp_profile_url: str | None = None
    cutpoint: PerIndividual | None = None
    num_imputations: int | None = DEFAULT_NUM_IMPUTATIONS
    seed: int | None = DEFAULT_SEED


class ValidationParameters(ParameterSet):
    """Validate an absolute risk model against observed study data.

    Risks are scored either by an embedded iCARE model (``icare_model_parameters``)
    or from precomputed columns of the study data (``predicted_risk_variable_name``,
    ``linear_predictor_variable_name``), never both.
    """
    study_data_url: str | None = None
    predicted_risk_interval: PerIndividual | str | None = None
    icare_model_parameters: AbsoluteRiskParameters | None = None
    predicted_risk_variable_name: str | None = None
    linear_predictor_variable_name: str | None = None
    reference_entry_age: PerIndividual | None = None
    reference_exit_age: PerIndividual | None = None
    reference_predicted_risks: list[float] | None = None
    reference_linear_predictors: list[float] | None = None
    number_of_percentiles: int | None = DEFAULT_NUMBER_OF_PERCENTILES
    linear_predictor_cutoffs: list[float] | None = None
    dataset_name: str | None = DEFAULT_DATASET_NAME
    model_name: str | None = DEFAULT_MODEL_NAME
    seed: int | None = DEFAULT_SEED

    @property
    def external_score_columns(self) -> list[str]:
        """Names of the precomputed-score fields that were supplied."""
        return [
            name
            for name in ("predicted_risk_variable_name", "linear_predictor_variable_name")
            if getattr(self, name)
        ]

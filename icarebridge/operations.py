"""Guest signatures of the three public operations."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from icarebridge.encoding import EncodingKind
from icarebridge.params import AbsoluteRiskParameters, SplitIntervalParameters, ValidationParameters
from icarebridge.utils.exceptions import ParameterConflictError, ValidationError


@dataclass(frozen=True)
class GuestParameter:
    """One named argument of a guest function and how its model field is encoded."""
    field: str
    guest_name: str
    kind: EncodingKind = EncodingKind.PLAIN
    # Set when the field is itself a parameter set rendered as one mapping literal
    nested: tuple[GuestParameter, ...] | None = None


def _plain(field: str) -> GuestParameter:
    return GuestParameter(field, field)


def _quoted(field: str) -> GuestParameter:
    return GuestParameter(field, field, EncodingKind.QUOTED_STRING)


def _path(field: str) -> GuestParameter:
    """URL field ``*_url`` is passed to the guest as the local file name argument ``*_path``."""
    return GuestParameter(field, field.removesuffix("_url") + "_path", EncodingKind.RESOURCE_PATH)


@dataclass(frozen=True)
class Operation:
    name: str
    guest_function: str
    parameters_model: type[BaseModel]
    signature: tuple[GuestParameter, ...]
    method_name: str = ""
    json_fields: tuple[str, ...] = ()

    def parse(self, params: BaseModel | Mapping[str, Any] | None = None, **fields: Any) -> BaseModel:
        """Validate caller input into this operation's parameter model (defaults applied)."""
        if isinstance(params, self.parameters_model) and not fields:
            return params
        data: dict[str, Any] = {}
        if isinstance(params, BaseModel):
            data.update(params.model_dump(exclude_unset=True))
        elif params is not None:
            data.update(params)
        data.update(fields)
        try:
            return self.parameters_model.model_validate(data)
        except PydanticValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            loc = ".".join(str(p) for p in first.get("loc", ()))
            raise ValidationError(f"Invalid parameters for {self.name}: {e}", field=loc or None) from e

    def check(self, params: BaseModel) -> None:
        """Cross-field checks that the guest itself does not make."""


@dataclass(frozen=True)
class ValidationOperation(Operation):
    def check(self, params: BaseModel) -> None:
        assert isinstance(params, ValidationParameters)
        columns = params.external_score_columns
        if params.icare_model_parameters is not None and columns:
            raise ParameterConflictError(
                "Supply either icare_model_parameters or precomputed risk columns "
                f"({', '.join(columns)}), not both",
                fields=["icare_model_parameters", *columns],
            )


ABSOLUTE_RISK_SIGNATURE: tuple[GuestParameter, ...] = (
    _plain("apply_age_start"),
    _plain("apply_age_interval_length"),
    _path("model_disease_incidence_rates_url"),
    _path("model_competing_incidence_rates_url"),
    _path("model_covariate_formula_url"),
    _path("model_log_relative_risk_url"),
    _path("model_reference_dataset_url"),
    _quoted("model_reference_dataset_weights_variable_name"),
    _path("model_snp_info_url"),
    _quoted("model_family_history_variable_name"),
    _plain("num_imputations"),
    _path("apply_covariate_profile_url"),
    _path("apply_snp_profile_url"),
    _plain("return_linear_predictors"),
    _plain("return_reference_risks"),
    _plain("seed"),
)

SPLIT_INTERVAL_SIGNATURE: tuple[GuestParameter, ...] = (
    _plain("apply_age_start"),
    _plain("apply_age_interval_length"),
    _path("model_disease_incidence_rates_url"),
    _path("model_competing_incidence_rates_url"),
    _path("model_covariate_formula_before_cutpoint_url"),
    _path("model_covariate_formula_after_cutpoint_url"),
    _path("model_log_relative_risk_before_cutpoint_url"),
    _path("model_log_relative_risk_after_cutpoint_url"),
    _path("model_reference_dataset_before_cutpoint_url"),
    _path("model_reference_dataset_after_cutpoint_url"),
    _quoted("model_reference_dataset_weights_variable_name_before_cutpoint"),
    _quoted("model_reference_dataset_weights_variable_name_after_cutpoint"),
    _path("model_snp_info_url"),
    _quoted("model_family_history_variable_name_before_cutpoint"),
    _quoted("model_family_history_variable_name_after_cutpoint"),
    _path("apply_covariate_profile_before_cutpoint_url"),
    _path("apply_covariate_profile_after_cutpoint_url"),
    _path("apply_snp_profile_url"),
    _plain("cutpoint"),
    _plain("num_imputations"),
    _plain("return_linear_predictors"),
    _plain("return_reference_risks"),
    _plain("seed"),
)

VALIDATION_SIGNATURE: tuple[GuestParameter, ...] = (
    _path("study_data_url"),
    _plain("predicted_risk_interval"),
    GuestParameter("icare_model_parameters", "icare_model_parameters", nested=ABSOLUTE_RISK_SIGNATURE),
    _quoted("predicted_risk_variable_name"),
    _quoted("linear_predictor_variable_name"),
    _plain("reference_entry_age"),
    _plain("reference_exit_age"),
    _plain("reference_predicted_risks"),
    _plain("reference_linear_predictors"),
    _plain("number_of_percentiles"),
    _plain("linear_predictor_cutoffs"),
    _quoted("dataset_name"),
    _quoted("model_name"),
    _plain("seed"),
)

COMPUTE_ABSOLUTE_RISK = Operation(
    name="compute_absolute_risk",
    guest_function="compute_absolute_risk",
    parameters_model=AbsoluteRiskParameters,
    signature=ABSOLUTE_RISK_SIGNATURE,
    method_name="iCARE - absolute risk",
    json_fields=("profile",),
)

COMPUTE_ABSOLUTE_RISK_SPLIT_INTERVAL = Operation(
    name="compute_absolute_risk_split_interval",
    guest_function="compute_absolute_risk_split_interval",
    parameters_model=SplitIntervalParameters,
    signature=SPLIT_INTERVAL_SIGNATURE,
    method_name="iCARE - absolute risk with split intervals",
    json_fields=("profile",),
)

VALIDATE_ABSOLUTE_RISK_MODEL = ValidationOperation(
    name="validate_absolute_risk_model",
    guest_function="validate_absolute_risk_model",
    parameters_model=ValidationParameters,
    signature=VALIDATION_SIGNATURE,
)

OPERATIONS: dict[str, Operation] = {
    op.name: op
    for op in (COMPUTE_ABSOLUTE_RISK, COMPUTE_ABSOLUTE_RISK_SPLIT_INTERVAL, VALIDATE_ABSOLUTE_RISK_MODEL)
}

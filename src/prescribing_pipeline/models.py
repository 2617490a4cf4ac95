"""Pydantic models for source rows and report results.

Record models define the schema of the two source files (and therefore of
the documents in the store). Report models describe the outputs of the five
analytical passes in `prescribing_pipeline.aggregate.reports`.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, ConfigDict


# largest integer the BSON store can hold
BSON_INT64_MAX = 2**63 - 1


class OrganizationRecord(BaseModel):
    """One row of the practice address (dimension) file.

    Attributes:
        index: Position/period column as it appears in the file (informational).
        id: Practice code; unique within the file.
        name: Practice name.
        facility: Building or surgery name.
        address1: First address line.
        address2: Second address line.
        region: Town or region used for regional grouping.
        postcode: Postcode used for postcode grouping.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)
    index: str
    id: str
    name: str
    facility: str
    address1: str
    address2: str
    region: str
    postcode: str


class TransactionRecord(BaseModel):
    """One row of the prescribing (fact) file.

    Attributes:
        hash: Strategic health authority code.
        organization_unit: Primary care trust code (kept, not queried).
        organization_id: Practice code; joins to `OrganizationRecord.id`.
        code: BNF classification code.
        description: BNF presentation name.
        item_count: Number of prescription items.
        net_cost: Net ingredient cost.
        actual_cost: Actual cost incurred.
        period: Reporting period, e.g. ``202001``.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)
    hash: str
    organization_unit: str
    organization_id: str
    code: str
    description: str
    item_count: int = Field(..., ge=0, le=BSON_INT64_MAX)
    net_cost: float = Field(..., ge=0, allow_inf_nan=False)
    actual_cost: float = Field(..., ge=0, allow_inf_nan=False)
    period: str

    @property
    def cost_per_item(self) -> float | None:
        """Actual cost of a single item, or None when there are no items."""
        if self.item_count == 0:
            return None
        return self.actual_cost / self.item_count


ORGANIZATION_FIELDS: tuple[str, ...] = tuple(OrganizationRecord.model_fields)
TRANSACTION_FIELDS: tuple[str, ...] = tuple(TransactionRecord.model_fields)


class OrganizationReconciliation(BaseModel):
    """Practice counts from the address file versus the prescribing file."""
    model_config = ConfigDict(extra="forbid")
    dimension_count: int = Field(..., ge=0)
    unmatched_count: int = Field(..., ge=0)
    total_count: int = Field(..., ge=0)


class PostcodeSpend(BaseModel):
    """Total actual spend of the practices sharing one postcode."""
    model_config = ConfigDict(extra="forbid")
    postcode: str
    total_cost: float


class RegionAverage(BaseModel):
    """Average per-item price in a region and its share of the national mean."""
    model_config = ConfigDict(extra="forbid")
    region: str
    average_cost: float
    pct_of_national: float

    def report_line(self) -> str:
        return (
            f"{self.region}: {self.average_cost:.2f} - "
            f"it's {self.pct_of_national:.2f}% from national mean"
        )


class RegionPriceReport(BaseModel):
    """Regional average prices, highest first, with the national baseline."""
    model_config = ConfigDict(extra="forbid")
    national_mean: float
    regions: list[RegionAverage]


class OrganizationVolume(BaseModel):
    """Total prescription items of one practice relative to the mean."""
    model_config = ConfigDict(extra="forbid")
    organization_id: str
    organization_name: str
    item_total: int = Field(..., ge=0)
    pct_of_mean: int


class VolumeReport(BaseModel):
    """Lowest-volume practices, smallest first, with the mean practice volume."""
    model_config = ConfigDict(extra="forbid")
    mean_items: int
    lowest: list[OrganizationVolume]

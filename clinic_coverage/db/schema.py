"""
Table definitions (SQLAlchemy Core).

Reference tables mirror the clinic system's patient, category, plan and
enrollment tables closely enough for the SQL data source to read them.
The two insurance_calculation tables are the engine's own append-only
audit store.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

# Money columns hold whole rials in the clinic system; two decimals match
# the smallest currency unit the engine accepts (0.01).
MONEY = Numeric(18, 2)
PERCENT = Numeric(5, 2)
# Percentages copied into the audit lines may come from JSON reference data
# with any precision
AUDIT_PERCENT = Numeric(12, 8)


# =============================================================================
# Reference data (read by SqlCoverageDataSource)
# =============================================================================

patient = Table(
    "patient",
    metadata,
    Column("patient_id", Integer, primary_key=True),
    Column("national_code", String(10)),
    Column("is_deleted", Boolean, nullable=False, default=False),
)

service_category = Table(
    "service_category",
    metadata,
    Column("service_category_id", Integer, primary_key=True),
    Column("title", String(200)),
    Column("is_active", Boolean, nullable=False, default=True),
)

insurance_plan = Table(
    "insurance_plan",
    metadata,
    Column("insurance_plan_id", Integer, primary_key=True),
    Column("plan_code", String(50)),
    Column("name", String(200)),
    Column("coverage_percent", PERCENT, nullable=False),
    Column("deductible", MONEY, nullable=False, default=0),
    Column("max_payout", MONEY),
)

patient_insurance = Table(
    "patient_insurance",
    metadata,
    Column("patient_insurance_id", Integer, primary_key=True),
    Column("patient_id", Integer, ForeignKey("patient.patient_id"), nullable=False, index=True),
    Column("insurance_plan_id", Integer, ForeignKey("insurance_plan.insurance_plan_id"), nullable=False),
    Column("policy_number", String(50), nullable=False),
    Column("card_number", String(50)),
    Column("priority", Integer, nullable=False),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("is_deleted", Boolean, nullable=False, default=False),
)

plan_service = Table(
    "plan_service",
    metadata,
    Column("plan_service_id", Integer, primary_key=True),
    Column("insurance_plan_id", Integer, ForeignKey("insurance_plan.insurance_plan_id"), nullable=False, index=True),
    Column("service_category_id", Integer, ForeignKey("service_category.service_category_id"), nullable=False),
    Column("coverage_override", PERCENT),
    Column("max_payout_override", MONEY),
    Column("is_covered", Boolean, nullable=False, default=True),
    Column("is_deleted", Boolean, nullable=False, default=False),
)


# =============================================================================
# Audit store (written by SqlCalculationRecorder, insert-only)
# =============================================================================

insurance_calculation = Table(
    "insurance_calculation",
    metadata,
    Column("calculation_id", Integer, primary_key=True, autoincrement=True),
    Column("patient_id", Integer, nullable=False, index=True),
    Column("service_id", Integer, index=True),
    Column("service_category_id", Integer, nullable=False),
    Column("reception_id", Integer, index=True),
    Column("appointment_id", Integer, index=True),
    Column("as_of_date", Date, nullable=False, index=True),
    Column("billed_amount", MONEY, nullable=False),
    Column("total_coverage", MONEY, nullable=False),
    Column("patient_share", MONEY, nullable=False),
    Column("policy_ids", JSON, nullable=False),
    Column("calculated_by", String(50), nullable=False),
    Column("calculated_at", DateTime, nullable=False),
    Column(
        "supersedes_id",
        Integer,
        ForeignKey("insurance_calculation.calculation_id"),
    ),
    # Exact result as JSON; the numeric columns above are for reporting
    Column("result_json", Text, nullable=False),
    UniqueConstraint("supersedes_id", name="uq_insurance_calculation_supersedes"),
)

insurance_calculation_line = Table(
    "insurance_calculation_line",
    metadata,
    Column("line_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "calculation_id",
        Integer,
        ForeignKey("insurance_calculation.calculation_id"),
        nullable=False,
        index=True,
    ),
    Column("sequence", Integer, nullable=False),
    Column("policy_id", Integer, nullable=False),
    Column("plan_id", Integer, nullable=False),
    Column("priority", Integer, nullable=False),
    Column("outcome", String(30), nullable=False),
    Column("remaining_before", MONEY, nullable=False),
    Column("deductible", MONEY, nullable=False),
    Column("amount_considered", MONEY, nullable=False),
    Column("coverage_percent", AUDIT_PERCENT, nullable=False),
    Column("max_payout", MONEY),
    Column("raw_coverage", Numeric(24, 8), nullable=False),
    Column("effective_coverage", MONEY, nullable=False),
    Column("remaining_after", MONEY, nullable=False),
)

REFERENCE_TABLES = [patient, service_category, insurance_plan, patient_insurance, plan_service]
AUDIT_TABLES = [insurance_calculation, insurance_calculation_line]

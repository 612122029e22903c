from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from ..models.csv_result import FieldMapping
from ..models.data_type import DataTypeDefinition, FieldDefinition
from ..models.upload import SavedMapping

"""Catalogue of importable data types.

A data type names a target table, the fields a CSV may map onto it, and any
fixed field values stamped on every row (the three project types share
``projects_weekly`` and differ only by ``project_type``). The catalogue is
static; field names double as column names.
"""

__all__ = [
    "CATEGORIES",
    "DATA_TYPES",
    "UnknownDataTypeError",
    "all_data_types",
    "grouped",
    "get_data_type",
    "data_types_for_table",
    "required_fields",
    "mappable_fields",
    "build_field_mappings",
    "score_mapping_match",
    "best_saved_mapping",
    "table_definition",
]

CATEGORIES = ("Financial", "Projects", "Sales", "Marketing", "Operations")


class UnknownDataTypeError(KeyError):
    """Raised for a data type id that is not in the catalogue."""

    def __str__(self) -> str:
        return f"Unknown data type: {self.args[0]}"


WEEK_ENDING = FieldDefinition("week_ending", "Week Ending", "date", required=True)


def _project_fields() -> tuple[FieldDefinition, ...]:
    return (
        WEEK_ENDING,
        FieldDefinition("hyperflo_count", "Hyperflo Count", "integer", required=True),
        FieldDefinition("xero_invoiced_amount", "Xero Invoiced Amount", "currency", required=True),
        FieldDefinition("new_business_percentage", "New Business %", "percentage"),
    )


def _quote_fields() -> tuple[FieldDefinition, ...]:
    return (
        FieldDefinition("quotes_issued_count", "Quotes Issued (Count)", "integer", required=True),
        FieldDefinition("quotes_issued_value", "Quotes Issued (Value)", "currency", required=True),
        FieldDefinition("quotes_won_count", "Quotes Won (Count)", "integer", required=True),
        FieldDefinition("quotes_won_value", "Quotes Won (Value)", "currency", required=True),
    )


def _project_type(kind: str) -> DataTypeDefinition:
    return DataTypeDefinition(
        id=f"projects_{kind}",
        name=f"Projects - {kind.capitalize()}",
        description=f"Weekly {kind} project counts and invoiced amounts from Hyperflo/Xero.",
        category="Projects",
        target_table="projects_weekly",
        fields=_project_fields(),
        fixed_fields={"project_type": kind},
    )


def _sales_type(kind: str) -> DataTypeDefinition:
    return DataTypeDefinition(
        id=f"sales_{kind}",
        name=f"Sales - {kind.capitalize()}",
        description=f"Weekly {kind} quotes issued and won (counts and values).",
        category="Sales",
        target_table="sales_weekly",
        fields=(WEEK_ENDING, *_quote_fields()),
        fixed_fields={"sales_type": kind},
    )


DATA_TYPES: tuple[DataTypeDefinition, ...] = (
    # Financial
    DataTypeDefinition(
        id="financial_pl",
        name="Financial - P&L",
        description="Weekly profit & loss summary from Xero: income, costs, expenses, wages, and net profit.",
        category="Financial",
        target_table="financial_weekly",
        fields=(
            WEEK_ENDING,
            FieldDefinition("total_trading_income", "Total Trading Income", "currency", required=True),
            FieldDefinition("total_cost_of_sales", "Total Cost of Sales", "currency", required=True),
            FieldDefinition("gross_profit", "Gross Profit", "currency", required=True),
            FieldDefinition("other_income", "Other Income", "currency", required=True),
            FieldDefinition("operating_expenses", "Operating Expenses", "currency", required=True),
            FieldDefinition("wages_and_salaries", "Wages & Salaries", "currency", required=True),
            FieldDefinition("net_profit", "Net Profit", "currency", required=True),
        ),
    ),
    DataTypeDefinition(
        id="revenue_breakdown",
        name="Revenue Breakdown",
        description="Weekly revenue by category (Class 1A, Commercial, Inspections, etc.).",
        category="Financial",
        target_table="revenue_weekly",
        fields=(
            WEEK_ENDING,
            FieldDefinition("category", "Revenue Category", "text", required=True),
            FieldDefinition("amount", "Amount", "currency", required=True),
        ),
    ),
    DataTypeDefinition(
        id="cash_position",
        name="Cash Position",
        description="Weekly bank balances, receivables, and payables snapshot.",
        category="Financial",
        target_table="cash_position_weekly",
        fields=(
            WEEK_ENDING,
            FieldDefinition("everyday_account", "Everyday Account", "currency"),
            FieldDefinition("overdraft_limit", "Overdraft Limit", "currency"),
            FieldDefinition("tax_savings", "Tax Savings", "currency"),
            FieldDefinition("capital_account", "Capital Account", "currency"),
            FieldDefinition("credit_cards", "Credit Cards", "currency"),
            FieldDefinition("total_cash_available", "Total Cash Available", "currency"),
            FieldDefinition("total_receivables", "Total Receivables", "currency"),
            FieldDefinition("current_receivables", "Current Receivables", "currency"),
            FieldDefinition("over_30_days", "Over 30 Days", "currency"),
            FieldDefinition("over_60_days", "Over 60 Days", "currency"),
            FieldDefinition("over_90_days", "Over 90 Days", "currency"),
            FieldDefinition("total_payables", "Total Payables", "currency"),
        ),
    ),
    # Projects
    _project_type("residential"),
    _project_type("commercial"),
    _project_type("retrospective"),
    # Sales
    _sales_type("residential"),
    _sales_type("commercial"),
    _sales_type("retrospective"),
    DataTypeDefinition(
        id="sales_regional",
        name="Sales - Regional",
        description="Weekly sales breakdown by region and type.",
        category="Sales",
        target_table="sales_regional_weekly",
        fields=(
            WEEK_ENDING,
            FieldDefinition("region", "Region", "text", required=True),
            FieldDefinition("sales_type", "Sales Type", "text", required=True),
            *_quote_fields(),
        ),
    ),
    DataTypeDefinition(
        id="team_performance",
        name="Team Performance",
        description="Weekly actual invoiced amounts by region/team.",
        category="Sales",
        target_table="team_performance_weekly",
        fields=(
            WEEK_ENDING,
            FieldDefinition("region", "Region / Team", "text", required=True),
            FieldDefinition("actual_invoiced", "Actual Invoiced", "currency", required=True),
        ),
    ),
    # Marketing
    DataTypeDefinition(
        id="lead_sources",
        name="Lead Sources",
        description="Weekly lead counts and costs by source (Google, SEO, Meta, etc.).",
        category="Marketing",
        target_table="leads_weekly",
        fields=(
            WEEK_ENDING,
            FieldDefinition("source", "Lead Source", "text", required=True),
            FieldDefinition("lead_count", "Lead Count", "decimal", required=True),
            FieldDefinition("cost_per_lead", "Cost per Lead", "currency"),
            FieldDefinition("total_cost", "Total Cost", "currency"),
        ),
    ),
    DataTypeDefinition(
        id="marketing_platform",
        name="Marketing Platform Performance",
        description="Weekly ad platform metrics: impressions, clicks, cost, conversions.",
        category="Marketing",
        target_table="marketing_performance_weekly",
        fields=(
            WEEK_ENDING,
            FieldDefinition("platform", "Platform", "text", required=True),
            FieldDefinition("impressions", "Impressions", "integer"),
            FieldDefinition("clicks", "Clicks", "integer"),
            FieldDefinition("cost", "Ad Spend", "currency"),
            FieldDefinition("conversions", "Conversions", "integer"),
            FieldDefinition("ctr", "CTR", "percentage"),
            FieldDefinition("cpc", "CPC", "currency"),
        ),
    ),
    # Operations
    DataTypeDefinition(
        id="website_analytics",
        name="Website Analytics",
        description="Weekly website traffic: sessions, users, page views, bounce rate.",
        category="Operations",
        target_table="website_analytics_weekly",
        fields=(
            WEEK_ENDING,
            FieldDefinition("sessions", "Sessions", "integer"),
            FieldDefinition("users", "Users", "integer"),
            FieldDefinition("page_views", "Page Views", "integer"),
            FieldDefinition("bounce_rate", "Bounce Rate", "percentage"),
            FieldDefinition("avg_session_duration", "Avg Session Duration (s)", "decimal"),
            FieldDefinition("new_users", "New Users", "integer"),
        ),
    ),
    DataTypeDefinition(
        id="staff_productivity",
        name="Staff Productivity",
        description="Weekly staff output: jobs completed, revenue generated, inspections.",
        category="Operations",
        target_table="staff_productivity_weekly",
        fields=(
            WEEK_ENDING,
            FieldDefinition("staff_name", "Staff Name", "text", required=True),
            FieldDefinition("role", "Role", "text", required=True),
            FieldDefinition("region", "Region", "text"),
            FieldDefinition("jobs_completed", "Jobs Completed", "integer"),
            FieldDefinition("revenue_generated", "Revenue Generated", "currency"),
            FieldDefinition("inspections_completed", "Inspections Completed", "integer"),
        ),
    ),
    DataTypeDefinition(
        id="phone_metrics",
        name="Phone Metrics",
        description="Weekly phone call statistics by staff member.",
        category="Operations",
        target_table="phone_weekly",
        fields=(
            WEEK_ENDING,
            FieldDefinition("staff_name", "Staff Name", "text", required=True),
            FieldDefinition("inbound_calls", "Inbound Calls", "integer"),
            FieldDefinition("outbound_calls", "Outbound Calls", "integer"),
            FieldDefinition("missed_calls", "Missed Calls", "integer"),
            FieldDefinition("avg_call_duration", "Avg Call Duration (s)", "decimal"),
        ),
    ),
    DataTypeDefinition(
        id="google_reviews",
        name="Google Reviews",
        description="Weekly Google review counts and average ratings.",
        category="Operations",
        target_table="google_reviews_weekly",
        fields=(
            WEEK_ENDING,
            FieldDefinition("review_count", "Review Count", "integer", required=True),
            FieldDefinition("average_rating", "Average Rating", "decimal"),
            FieldDefinition("cumulative_count", "Cumulative Count", "integer"),
            FieldDefinition("cumulative_average_rating", "Cumulative Average Rating", "decimal"),
        ),
    ),
)

_BY_ID: dict[str, DataTypeDefinition] = {dt.id: dt for dt in DATA_TYPES}


def all_data_types() -> list[DataTypeDefinition]:
    return list(DATA_TYPES)


def grouped() -> dict[str, list[DataTypeDefinition]]:
    """Data types per category, categories in catalogue order."""
    result: dict[str, list[DataTypeDefinition]] = {}
    for dt in DATA_TYPES:
        result.setdefault(dt.category, []).append(dt)
    return result


def get_data_type(data_type_id: str) -> DataTypeDefinition:
    try:
        return _BY_ID[data_type_id]
    except KeyError:
        raise UnknownDataTypeError(data_type_id) from None


def data_types_for_table(table: str) -> list[DataTypeDefinition]:
    return [dt for dt in DATA_TYPES if dt.target_table == table]


def required_fields(data_type_id: str) -> list[str]:
    return [f.db_field for f in get_data_type(data_type_id).fields if f.required]


def mappable_fields(data_type_id: str) -> list[FieldDefinition]:
    return list(get_data_type(data_type_id).fields)


def build_field_mappings(data_type_id: str, header_map: Mapping[str, str]) -> list[FieldMapping]:
    """Turn a CSV header -> field mapping into typed :class:`FieldMapping` entries.

    Headers mapped to a field the data type does not define are dropped.
    """
    definition = get_data_type(data_type_id)
    mappings: list[FieldMapping] = []
    for csv_header, db_field in header_map.items():
        field_def = definition.get_field(db_field)
        if field_def is None:
            continue
        mappings.append(
            FieldMapping(
                csv_header=csv_header,
                db_field=field_def.db_field,
                expected_type=field_def.type,
                required=field_def.required,
            )
        )
    return mappings


def score_mapping_match(saved_headers: Sequence[str], csv_headers: Iterable[str]) -> float:
    """Fraction of a saved mapping's headers present in a file (case and padding ignored)."""
    if not saved_headers:
        return 0.0
    present = {h.strip().lower() for h in csv_headers}
    matched = sum(1 for h in saved_headers if h.strip().lower() in present)
    return matched / len(saved_headers)


def best_saved_mapping(saved: Iterable[SavedMapping], csv_headers: Sequence[str]) -> tuple[SavedMapping, float] | None:
    """Highest scoring saved mapping; the earlier one wins a tie. None if nothing matches."""
    best: tuple[SavedMapping, float] | None = None
    for mapping in saved:
        score = score_mapping_match(list(mapping.mapping), csv_headers)
        if score > 0 and (best is None or score > best[1]):
            best = (mapping, score)
    return best


def table_definition(table: str) -> DataTypeDefinition:
    """Definition covering every field any data type writes to ``table``.

    Fixed fields of the table's data types become required text fields, since
    workbook rows carry them as data.
    """
    definitions = data_types_for_table(table)
    if not definitions:
        raise UnknownDataTypeError(table)
    fields: dict[str, FieldDefinition] = {}
    for dt in definitions:
        for name in dt.fixed_fields:
            fields.setdefault(name, FieldDefinition(name, name.replace("_", " ").title(), "text", required=True))
        for f in dt.fields:
            fields.setdefault(f.db_field, f)
    ordered = sorted(fields.values(), key=lambda f: f.db_field != WEEK_ENDING.db_field)
    return DataTypeDefinition(
        id=f"workbook:{table}",
        name=table,
        description=f"All fields of {table}",
        category=definitions[0].category,
        target_table=table,
        fields=tuple(ordered),
    )

"""
Command-line interface for the clinic coverage engine.

Provides commands for previewing and recording coverage calculations,
searching and summarizing the audit store and initializing the database.
"""

import sys
from pathlib import Path

import click
import structlog

from clinic_coverage.config import load_config, validate_config
from clinic_coverage.utils.logging import configure_logging
from clinic_coverage.utils.serializers import serialize_to_json


logger = structlog.get_logger()


def _load_config(ctx):
    """Load configuration and apply its logging section unless --verbose was given."""
    config = load_config(ctx.obj.get("config_path"))
    if not ctx.obj.get("verbose"):
        configure_logging(
            level=config.logging.level,
            json_output=ctx.obj.get("json_logs") or config.logging.json_output,
        )
    return config


def _build_data_source(config, source: str):
    """Data source for the --source option: JSON reference files or the database."""
    if source == "db":
        from clinic_coverage.db import SqlCoverageDataSource, create_engine_from_config

        return SqlCoverageDataSource(create_engine_from_config(config.database))

    from clinic_coverage.reference import ReferenceDataLoader

    return ReferenceDataLoader(Path(config.reference_data_path)).build_data_source()


def _build_recorder(config):
    from clinic_coverage.db import SqlCalculationRecorder, create_engine_from_config

    return SqlCalculationRecorder(create_engine_from_config(config.database))


def _emit_outcome(outcome, payload) -> None:
    """Print a result payload, or the typed failure and exit 1."""
    if not outcome.ok:
        click.echo(serialize_to_json({"failure": outcome.failure}))
        sys.exit(1)
    click.echo(serialize_to_json(payload))


@click.group()
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.option(
    "--json-logs",
    is_flag=True,
    help="Output logs as JSON",
)
@click.pass_context
def main(ctx, config, verbose, json_logs):
    """Clinic insurance coverage calculation engine."""
    ctx.ensure_object(dict)

    log_level = "DEBUG" if verbose else "INFO"
    configure_logging(level=log_level, json_output=json_logs)

    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["json_logs"] = json_logs


@main.command()
@click.option("--patient-id", "-p", type=int, required=True, help="Patient being charged")
@click.option("--category-id", "-s", type=int, required=True, help="Service category id")
@click.option("--amount", "-a", type=str, required=True, help="Billed amount (e.g. 1000000)")
@click.option(
    "--as-of",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Calculation date (format: YYYY-MM-DD, default: today)",
)
@click.option(
    "--source",
    type=click.Choice(["json", "db"]),
    default="json",
    show_default=True,
    help="Where policies and tariffs are read from",
)
@click.option("--record", is_flag=True, help="Write the result to the audit table")
@click.option("--user", default="SYSTEM", show_default=True, help="User id stored on the audit record")
@click.option("--service-id", type=int, default=None, help="Service id stored on the audit record")
@click.option("--appointment-id", type=int, default=None, help="Appointment id stored on the audit record")
@click.pass_context
def calculate(ctx, patient_id, category_id, amount, as_of, source, record, user, service_id, appointment_id):
    """Calculate coverage for one service charge.

    Examples:

    \b
    # Preview against the JSON reference data
    clinic-coverage calculate -p 12 -s 3 -a 1000000

    \b
    # Price from the database and record the result
    clinic-coverage calculate -p 12 -s 3 -a 1000000 --source db --record --user reception-1
    """
    from clinic_coverage.core import CoverageService

    try:
        config = _load_config(ctx)
        service = CoverageService(
            _build_data_source(config, source),
            recorder=_build_recorder(config) if record else None,
            config=config.calculation,
        )
        outcome = service.calculate_coverage(
            patient_id,
            category_id,
            amount,
            as_of.date() if as_of else None,
            service_id=service_id,
            appointment_id=appointment_id,
            calculated_by=user,
        )
    except Exception as e:
        logger.exception("calculate_failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    _emit_outcome(
        outcome,
        {"result": outcome.value, "calculation_ids": list(outcome.calculation_ids)},
    )


@main.command("check-coverage")
@click.option("--patient-id", "-p", type=int, required=True, help="Patient id")
@click.option("--category-id", "-s", type=int, required=True, help="Service category id")
@click.option(
    "--as-of",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Date policies must be valid on (format: YYYY-MM-DD, default: today)",
)
@click.option(
    "--source",
    type=click.Choice(["json", "db"]),
    default="json",
    show_default=True,
    help="Where policies and tariffs are read from",
)
@click.pass_context
def check_coverage(ctx, patient_id, category_id, as_of, source):
    """Check whether any active policy covers a service category."""
    from clinic_coverage.core import CoverageService

    try:
        config = _load_config(ctx)
        service = CoverageService(_build_data_source(config, source), config=config.calculation)
        outcome = service.is_service_covered(
            patient_id,
            category_id,
            as_of.date() if as_of else None,
        )
    except Exception as e:
        logger.exception("check_coverage_failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    _emit_outcome(
        outcome,
        {
            "patient_id": patient_id,
            "service_category_id": category_id,
            "covered": outcome.value,
        },
    )


@main.command()
@click.option("--patient-id", "-p", type=int, required=True, help="Patient id")
@click.option("--current-only", is_flag=True, help="Hide records that have been superseded")
@click.pass_context
def history(ctx, patient_id, current_only):
    """Show the recorded calculations of a patient."""
    try:
        config = _load_config(ctx)
        records = _build_recorder(config).list_for_patient(patient_id)
        if current_only:
            records = [r for r in records if not r.is_superseded]
    except Exception as e:
        logger.exception("history_failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(serialize_to_json([r.model_dump(mode="json") for r in records]))


@main.command()
@click.option("--patient-id", "-p", type=int, default=None, help="Filter by patient")
@click.option("--service-id", type=int, default=None, help="Filter by service")
@click.option("--plan-id", type=int, default=None, help="Records where this plan contributed")
@click.option("--appointment-id", type=int, default=None, help="Filter by appointment")
@click.option("--current-only", is_flag=True, help="Hide records that have been superseded")
@click.option(
    "--from", "from_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="First calculation date (format: YYYY-MM-DD)",
)
@click.option(
    "--to", "to_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Last calculation date (format: YYYY-MM-DD)",
)
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True, help="Page number")
@click.option("--page-size", type=click.IntRange(min=1), default=10, show_default=True, help="Records per page")
@click.pass_context
def search(ctx, patient_id, service_id, plan_id, appointment_id, current_only, from_date, to_date, page, page_size):
    """Search recorded calculations, newest first."""
    try:
        config = _load_config(ctx)
        result = _build_recorder(config).search(
            patient_id=patient_id,
            service_id=service_id,
            plan_id=plan_id,
            appointment_id=appointment_id,
            current_only=current_only,
            from_date=from_date.date() if from_date else None,
            to_date=to_date.date() if to_date else None,
            page_number=page,
            page_size=page_size,
        )
    except Exception as e:
        logger.exception("search_failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(serialize_to_json(result))


@main.command()
@click.pass_context
def stats(ctx):
    """Show counts and money totals of the audit store."""
    try:
        config = _load_config(ctx)
        statistics = _build_recorder(config).statistics()
    except Exception as e:
        logger.exception("stats_failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(serialize_to_json(statistics))


@main.command("init-db")
@click.option(
    "--include-reference",
    is_flag=True,
    help="Also create patient, plan, policy and override tables",
)
@click.option(
    "--drop-existing",
    is_flag=True,
    help="Drop existing tables before creating",
)
@click.pass_context
def init_db(ctx, include_reference, drop_existing):
    """Initialize the database schema."""
    from clinic_coverage.db import create_engine_from_config, init_database

    try:
        config = _load_config(ctx)

        click.echo(f"Initializing database: {config.database.url or config.database.database}")

        if drop_existing:
            if not click.confirm("This will drop the selected tables. Continue?"):
                click.echo("Aborted.")
                return

        tables = init_database(
            create_engine_from_config(config.database),
            include_reference=include_reference,
            drop_existing=drop_existing,
        )

        click.echo(f"Database initialized successfully ({', '.join(tables)}).")

    except Exception as e:
        logger.exception("init_db_failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command("validate-config")
@click.option("--check-db", is_flag=True, help="Also connect to the configured database")
@click.pass_context
def validate_config_cmd(ctx, check_db):
    """Validate the configuration file."""
    from clinic_coverage.config.validation import ConfigurationError, validate_database_connection

    try:
        config = _load_config(ctx)
        warnings = validate_config(config)
        if check_db:
            validate_database_connection(config)

        click.echo("Configuration is valid.")
        if check_db:
            click.echo("Database connection OK.")

        if warnings:
            click.echo("\nWarnings:")
            for warning in warnings:
                click.echo(f"  - {warning}")

    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()

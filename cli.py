#!/usr/bin/env python3
"""
CLI for the project cost forecasting engine.

Usage:
    python cli.py wbs budget.yaml --format csv
    python cli.py eac --purchase-orders pos.csv --labor-actuals actuals.csv --labor-forecasts headcount.csv
    python cli.py --database-url sqlite:///costs.db labor-costs PROJECT_ID
    python cli.py per-diem recalculate PROJECT_ID

Commands:
    init-db       Create the database tables
    wbs           Generate a WBS from a discipline budget file
    eac           Compute Estimate at Completion from CSV exports
    forecast      EAC, threshold forecast and VAC for a stored project
    labor-costs   Project labor and per diem totals by category
    weekly-labor  Weekly labor and per diem series
    per-diem      Per diem summary, trends, validation and recalculation
"""
import json
import logging
from decimal import Decimal
from typing import List, Optional

import click
import pandas as pd
import yaml
from sqlalchemy.orm import sessionmaker

from costcontrol import __version__
from costcontrol.config import ConfigurationError, get_config
from costcontrol.domain.entities import (
    BudgetDiscipline,
    CraftType,
    LaborActual,
    LaborCategory,
    LaborForecast,
    PurchaseOrder,
)
from costcontrol.domain.exceptions import DomainError
from costcontrol.domain.services import (
    ForecastCalculationService,
    LaborCostCalculator,
    PerDiemCalculator,
    ProjectForecastService,
    WBSGenerator,
)
from costcontrol.infrastructure.repositories import WBSRepository
from costcontrol.models import DATABASE_URL, init_db, make_engine

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _money(value: Decimal) -> str:
    return f"${value:>15,.2f}"


def _read_records(path: Optional[str]) -> List[dict]:
    """CSV rows as dicts with blanks as None; ids stay strings."""
    if not path:
        return []
    df = pd.read_csv(path, dtype={'id': str, 'craft_type_id': str, 'craft_type': str})
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict(orient='records')


def _load_disciplines(path: str) -> List[BudgetDiscipline]:
    """Discipline list from a YAML or JSON file (a list, or a mapping with 'disciplines')."""
    with open(path, 'r') as f:
        data = yaml.safe_load(f)
    if isinstance(data, dict):
        data = data.get('disciplines', [])
    if not isinstance(data, list):
        raise click.BadParameter("expected a list of disciplines", param_hint='BUDGET_FILE')
    return [BudgetDiscipline.from_dict(row) for row in data]


def _session(ctx: click.Context):
    return ctx.obj['session_factory']()


def _echo_frame(df: pd.DataFrame, output_format: str) -> None:
    if output_format == 'csv':
        click.echo(df.to_csv(index=False), nl=False)
    elif output_format == 'json':
        click.echo(df.to_json(orient='records', indent=2, default_handler=str))
    else:
        click.echo(df.to_string(index=False))


FORMAT_OPTION = click.option(
    '--format', 'output_format',
    type=click.Choice(['table', 'csv', 'json']),
    default='table',
    help='Output format'
)


@click.group()
@click.version_option(version=__version__)
@click.option(
    '--config',
    default=None,
    envvar='COSTCONTROL_CONFIG',
    help='Path to engine configuration YAML file',
    type=click.Path(exists=True)
)
@click.option(
    '--database-url',
    default=DATABASE_URL,
    envvar='COSTCONTROL_DATABASE_URL',
    help='SQLAlchemy database URL'
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], database_url: str):
    """Project cost forecasting CLI.

    Generates WBS codes from discipline budgets and computes labor,
    per diem and Estimate at Completion figures.
    """
    try:
        engine_config = get_config(config)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    engine = make_engine(database_url)
    ctx.obj = {
        'config': engine_config,
        'engine': engine,
        'session_factory': sessionmaker(autocommit=False, autoflush=False, bind=engine),
    }


@cli.command('init-db')
@click.pass_context
def init_db_command(ctx: click.Context):
    """Create the database tables."""
    init_db(ctx.obj['engine'])
    click.echo(click.style("Database initialized", fg='green'))


@cli.command()
@click.argument('budget_file', type=click.Path(exists=True))
@FORMAT_OPTION
@click.option('--save', 'project_id', default=None, help='Replace the stored WBS of this project')
@click.pass_context
def wbs(ctx: click.Context, budget_file: str, output_format: str, project_id: Optional[str]):
    """Generate a WBS from a discipline budget file.

    BUDGET_FILE is YAML or JSON: a list of disciplines with a name and
    a categories mapping (DIRECT_LABOR, INDIRECT_LABOR, MATERIALS,
    EQUIPMENT, SUBCONTRACTS, ADD_ONS).

    Example:
        python cli.py wbs budget.yaml --format csv
    """
    generator = WBSGenerator(ctx.obj['config'])
    try:
        nodes = generator.generate_wbs_structure(_load_disciplines(budget_file))
    except (DomainError, ValueError) as e:
        raise click.ClickException(str(e))

    df = pd.DataFrame([node.to_dict() for node in nodes])
    df['path'] = df['path'].map(' > '.join)
    if output_format == 'table':
        df = df[['code', 'level', 'description', 'cost_type', 'budget_total', 'sort_order']]
    _echo_frame(df, output_format)

    if project_id:
        session = _session(ctx)
        try:
            written = WBSRepository(session).replace_for_project(project_id, nodes)
        except DomainError as e:
            raise click.ClickException(e.message)
        finally:
            session.close()
        click.echo(click.style(f"Saved {written} WBS nodes for project {project_id}", fg='green'), err=True)


@cli.command()
@click.option('--purchase-orders', type=click.Path(exists=True), help='Purchase orders CSV')
@click.option('--labor-actuals', type=click.Path(exists=True), help='Craft labor actuals CSV')
@click.option('--labor-forecasts', type=click.Path(exists=True), help='Headcount forecast CSV')
@click.option('--craft-types', type=click.Path(exists=True), help='Craft types CSV (id, default_rate, category)')
@click.option('--contract-value', type=str, default=None, help='Contract value for Variance at Completion')
@click.option('--json', 'output_json', is_flag=True, help='Output as JSON')
@click.pass_context
def eac(ctx: click.Context, purchase_orders: str, labor_actuals: str, labor_forecasts: str,
        craft_types: str, contract_value: Optional[str], output_json: bool):
    """Compute Estimate at Completion from CSV exports.

    Example:
        python cli.py eac \\
            --purchase-orders pos.csv \\
            --labor-actuals labor.csv \\
            --labor-forecasts headcount.csv \\
            --craft-types crafts.csv \\
            --contract-value 1500000
    """
    service = ForecastCalculationService(ctx.obj['config'])

    crafts = {c.id: c for c in (CraftType.from_dict(r) for r in _read_records(craft_types))}
    pos = [PurchaseOrder.from_dict(r) for r in _read_records(purchase_orders)]
    actuals = [LaborActual.from_dict(r, crafts) for r in _read_records(labor_actuals)]
    forecasts = [LaborForecast.from_dict(r) for r in _read_records(labor_forecasts)]

    result = service.calculate_project_eac(pos, actuals, forecasts, crafts)
    variance = (
        service.calculate_variance_at_completion(Decimal(contract_value), result.estimate_at_completion)
        if contract_value else None
    )

    if output_json:
        payload = {
            'actual_cost_to_date': str(result.actual_cost_to_date),
            'estimate_to_complete': str(result.estimate_to_complete),
            'estimate_at_completion': str(result.estimate_at_completion),
            'breakdown': {k: str(v) for k, v in vars(result.breakdown).items()},
        }
        if variance:
            payload['variance_at_completion'] = str(variance.variance_at_completion)
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo(f"\n{'=' * 50}")
    click.echo(click.style("ESTIMATE AT COMPLETION", fg='green', bold=True))
    click.echo(f"{'=' * 50}")
    click.echo(f"Actual Cost to Date:   {_money(result.actual_cost_to_date)}")
    click.echo(f"Estimate to Complete:  {_money(result.estimate_to_complete)}")
    click.echo(f"Estimate at Completion:{_money(result.estimate_at_completion)}")
    if variance:
        click.echo(f"Variance at Completion:{_money(variance.variance_at_completion)}"
                   f" ({variance.variance_percentage:.1f}%)")
    click.echo(f"{'=' * 50}")
    click.echo("\nBreakdown:")
    click.echo(f"  PO Invoiced:         {_money(result.breakdown.po_actuals)}")
    click.echo(f"  PO Remaining:        {_money(result.breakdown.po_remaining)}")
    click.echo(f"  PO Forecasted:       {_money(result.breakdown.po_forecasted)}")
    click.echo(f"  Labor Actuals:       {_money(result.breakdown.labor_actuals)}")
    click.echo(f"  Future Labor:        {_money(result.breakdown.labor_future)}")


@cli.command()
@click.argument('project_id')
@click.option('--as-of', type=click.DateTime(formats=['%Y-%m-%d']), default=None,
              help='Headcount weeks after this date count as future labor')
@click.pass_context
def forecast(ctx: click.Context, project_id: str, as_of):
    """Forecast a stored project: EAC, threshold forecast and VAC."""
    session = _session(ctx)
    try:
        result = ProjectForecastService(session, ctx.obj['config']).calculate_project_forecast(
            project_id, as_of=as_of.date() if as_of else None
        )
    except DomainError as e:
        raise click.ClickException(e.message)
    finally:
        session.close()

    threshold = result.threshold
    click.echo(click.style(f"Forecast - project {project_id}", fg='cyan', bold=True))
    click.echo(f"Actual Cost to Date:     {_money(result.eac.actual_cost_to_date)}")
    click.echo(f"Estimate to Complete:    {_money(result.eac.estimate_to_complete)}")
    click.echo(f"Estimate at Completion:  {_money(result.eac.estimate_at_completion)}")
    click.echo(f"Revised Contract:        {_money(threshold.revised_contract)}")
    click.echo(f"Spend:                   {threshold.spend_percentage:>15.1f}% ({threshold.method.value})")
    click.echo(f"Forecasted Final Cost:   {_money(threshold.forecasted_final_cost)}")
    click.echo(f"Margin:                  {threshold.margin_percentage:>15.1f}%")
    click.echo(f"Variance at Completion:  {_money(result.variance.variance_at_completion)}")


@cli.command('labor-costs')
@click.argument('project_id')
@click.option('--division-id', default=None, help='Restrict to one division')
@click.pass_context
def labor_costs(ctx: click.Context, project_id: str, division_id: Optional[str]):
    """Project labor and per diem totals by labor category."""
    session = _session(ctx)
    try:
        summary = LaborCostCalculator(session, ctx.obj['config']).calculate_project_labor_costs(
            project_id, division_id=division_id
        )
    finally:
        session.close()

    click.echo(click.style(f"Labor costs - project {project_id}", fg='cyan', bold=True))
    click.echo(f"{'Category':<10}{'Hours':>12}{'Labor':>18}{'Per Diem':>18}{'Total':>18}")
    for category in LaborCategory:
        row = summary.category(category)
        click.echo(f"{category.value:<10}{row.hours:>12,.2f}{row.labor_cost:>18,.2f}"
                   f"{row.per_diem:>18,.2f}{row.total:>18,.2f}")
    click.echo(f"{'total':<10}{summary.total_hours:>12,.2f}{summary.total_labor_cost:>18,.2f}"
               f"{summary.total_per_diem:>18,.2f}{summary.total_cost:>18,.2f}")


@cli.command('weekly-labor')
@click.argument('project_id')
@click.option('--start', 'start_date', type=click.DateTime(formats=['%Y-%m-%d']), default=None)
@click.option('--end', 'end_date', type=click.DateTime(formats=['%Y-%m-%d']), default=None)
@FORMAT_OPTION
@click.pass_context
def weekly_labor(ctx: click.Context, project_id: str, start_date, end_date, output_format: str):
    """Weekly labor and per diem series."""
    session = _session(ctx)
    try:
        weeks = LaborCostCalculator(session, ctx.obj['config']).get_weekly_labor_costs(
            project_id,
            start_date=start_date.date() if start_date else None,
            end_date=end_date.date() if end_date else None,
        )
    finally:
        session.close()

    if not weeks:
        click.echo(click.style("No labor or per diem recorded", fg='yellow'))
        return
    df = pd.DataFrame([
        {
            'week_ending': w.week_ending.isoformat(),
            'hours': w.total_hours,
            'direct_labor': w.direct_labor_cost,
            'indirect_labor': w.indirect_labor_cost,
            'staff_labor': w.staff_labor_cost,
            'per_diem': w.total_per_diem,
            'total_cost': w.total_cost,
        }
        for w in weeks
    ])
    _echo_frame(df, output_format)


# =============================================================================
# Per diem
# =============================================================================

@cli.group('per-diem')
def per_diem():
    """Per diem summary, trends, validation and recalculation."""
    pass


def _per_diem_calculator(ctx: click.Context):
    session = _session(ctx)
    return session, PerDiemCalculator(session, ctx.obj['config'])


@per_diem.command()
@click.argument('project_id')
@click.pass_context
def summary(ctx: click.Context, project_id: str):
    """Per diem totals for a project."""
    session, calculator = _per_diem_calculator(ctx)
    try:
        result = calculator.get_project_per_diem_summary(project_id)
    finally:
        session.close()

    if result is None:
        click.echo(click.style("No per diem summary (project missing or per diem disabled)", fg='yellow'))
        return
    click.echo(click.style(f"Per diem - {result.project_name}", fg='cyan', bold=True))
    click.echo(f"Rates:            direct {result.per_diem_rate_direct:,.2f} / indirect {result.per_diem_rate_indirect:,.2f}")
    click.echo(f"Employees:        {result.unique_employees}")
    click.echo(f"Days:             {result.days_with_per_diem}")
    click.echo(f"Direct:           {_money(result.total_direct_per_diem)}")
    click.echo(f"Indirect:         {_money(result.total_indirect_per_diem)}")
    click.echo(f"Total:            {_money(result.total_per_diem_amount)}")
    if result.first_per_diem_date:
        click.echo(f"Period:           {result.first_per_diem_date} to {result.last_per_diem_date}")


@per_diem.command()
@click.argument('project_id')
@click.option('--group-by', type=click.Choice(['week', 'month']), default='week')
@FORMAT_OPTION
@click.pass_context
def trends(ctx: click.Context, project_id: str, group_by: str, output_format: str):
    """Per diem by week (Monday anchored) or month."""
    session, calculator = _per_diem_calculator(ctx)
    try:
        points = calculator.get_per_diem_trends(project_id, group_by)
    finally:
        session.close()

    if not points:
        click.echo(click.style("No per diem recorded", fg='yellow'))
        return
    df = pd.DataFrame([vars(point) for point in points])
    _echo_frame(df, output_format)


@per_diem.command()
@click.argument('project_id')
@click.pass_context
def validate(ctx: click.Context, project_id: str):
    """Check a project's per diem configuration."""
    session, calculator = _per_diem_calculator(ctx)
    try:
        result = calculator.validate_project_per_diem_config(project_id)
    finally:
        session.close()

    for error in result.errors:
        click.echo(click.style(f"ERROR: {error}", fg='red'))
    for warning in result.warnings:
        click.echo(click.style(f"WARNING: {warning}", fg='yellow'))
    if not result.is_valid:
        raise click.exceptions.Exit(1)
    click.echo(click.style("Per diem configuration OK", fg='green'))


@per_diem.command()
@click.argument('project_id')
@click.pass_context
def recalculate(ctx: click.Context, project_id: str):
    """Rebuild per diem rows from labor actuals."""
    session, calculator = _per_diem_calculator(ctx)
    try:
        result = calculator.recalculate_project_per_diem(project_id)
    finally:
        session.close()

    if result is None:
        click.echo(click.style("Per diem recalculation failed", fg='red'), err=True)
        raise click.Abort()
    if result.message:
        click.echo(click.style(result.message, fg='yellow'))
    click.echo(f"Records processed: {result.records_processed}")
    click.echo(f"Total per diem:    {_money(result.total_per_diem_amount)}")


if __name__ == '__main__':
    cli()

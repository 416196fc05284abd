"""Command-line interface for statement ingestion."""

import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional

import click

from .models.core import ParsedTransaction, UploadBatch, UploadOptions, UploadOutcome
from .parsers.delimited_parser import DelimitedStatementParser
from .parsers.freeform_parser import FreeformStatementParser
from .parsers.layouts import detect_bank
from .utils.config_manager import ConfigManager
from .utils.csv_writer import CSVWriter
from .utils.error_handler import ErrorHandler, IngestError
from .utils.repository import JsonFileTransactionRepository
from .utils.uploader import BatchUploadOrchestrator


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class StatementIngestCLI:
    """Main CLI class for statement ingestion"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_manager = ConfigManager(config_path)
        self.config = self.config_manager.load_config()
        self.csv_writer = CSVWriter()

    def read_file(self, file_path: str) -> str:
        with open(file_path, 'r', encoding='utf-8', errors='replace') as f:
            return f.read()

    def parse_file(self, file_path: str, account_id: str, user_id: str,
                   freeform: bool = False) -> List[ParsedTransaction]:
        """Parse a statement file into transactions"""
        content = self.read_file(file_path)
        if freeform:
            parser = FreeformStatementParser(self.config)
        else:
            parser = DelimitedStatementParser(self.config)

        transactions = parser.parse(content, account_id, user_id)

        if parser.error_handler.has_warnings():
            logger.info(f"{len(parser.error_handler.warnings)} rows skipped or adjusted in {file_path}")
        return transactions

    def upload_file(self, file_path: str, account_id: str, user_id: str,
                    freeform: bool = False,
                    store_path: Optional[str] = None,
                    skip_validation: bool = False,
                    skip_duplicate_check: bool = False) -> UploadOutcome:
        """Parse a statement file and upload it to the JSON transaction store"""
        transactions = self.parse_file(file_path, account_id, user_id, freeform)
        batch = UploadBatch(
            transactions=transactions,
            account_id=account_id,
            user_id=user_id,
            source=file_path
        )

        repository = JsonFileTransactionRepository(store_path or self.config.store_path)
        orchestrator = BatchUploadOrchestrator(
            repository,
            self.config,
            emit_upload_completed=self._announce_upload,
            error_handler=ErrorHandler(logger=logger, log_directory=self.config.log_directory)
        )
        options = UploadOptions(
            skip_validation=skip_validation or self.config.skip_validation,
            skip_duplicate_check=skip_duplicate_check or self.config.skip_duplicate_check,
            on_progress=self._report_progress
        )
        return asyncio.run(orchestrator.upload_with_validation(batch, user_id, options))

    def _report_progress(self, stage: str, percent: int):
        click.echo(f"  [{percent:3d}%] {stage}")

    def _announce_upload(self, tag: str, count: int):
        logger.info(f"{tag}: {count} transactions added")

    def summarize(self, transactions: List[ParsedTransaction]) -> Dict[str, Any]:
        return self.csv_writer.summarize(transactions)


# CLI Commands using Click
@click.group()
@click.option('--config', '-c', help='Path to configuration file')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, config, verbose):
    """Statement Ingest - Parse bank statements and upload transactions"""

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj['cli'] = StatementIngestCLI(config)


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def detect(ctx, file_path):
    """Detect the bank layout of a statement file"""

    cli_instance = ctx.obj['cli']
    layout = detect_bank(cli_instance.read_file(file_path))
    click.echo(layout.value if layout else "generic")


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--account', '-a', required=True, help='Target account id')
@click.option('--user', '-u', required=True, help='Owning user id')
@click.option('--freeform', is_flag=True, help='Treat the file as OCR or pasted statement text')
@click.option('--output', '-o', help='Write parsed transactions to this CSV file')
@click.pass_context
def parse(ctx, file_path, account, user, freeform, output):
    """Parse a statement file and show a summary"""

    cli_instance = ctx.obj['cli']

    try:
        transactions = cli_instance.parse_file(file_path, account, user, freeform)
    except IngestError as e:
        click.echo(f"✗ {str(e)}")
        sys.exit(1)

    summary = cli_instance.summarize(transactions)
    click.echo(f"✓ Parsed {summary['total_transactions']} transactions")
    click.echo(f"  Income: {summary['income_count']} ({summary['total_income']:.2f})")
    click.echo(f"  Expense: {summary['expense_count']} ({summary['total_expense']:.2f})")
    click.echo(f"  Date range: {summary['start_date']} to {summary['end_date']}")

    if output:
        cli_instance.csv_writer.write_transactions(transactions, output)
        click.echo(f"  Output: {output}")


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def stats(ctx, file_path):
    """Show row statistics for a delimited statement"""

    cli_instance = ctx.obj['cli']
    parser = DelimitedStatementParser(cli_instance.config)
    try:
        parsing_stats = parser.get_parsing_stats(cli_instance.read_file(file_path))
    except IngestError as e:
        click.echo(f"✗ {str(e)}")
        sys.exit(1)

    click.echo(f"Layout: {parsing_stats.bank_name}")
    click.echo(f"Total rows: {parsing_stats.total_rows}")
    click.echo(f"Valid rows: {parsing_stats.valid_rows}")
    click.echo(f"Invalid rows: {parsing_stats.invalid_rows}")
    click.echo(f"Detected columns: {', '.join(parsing_stats.detected_columns) or 'none'}")
    click.echo(f"Missing columns: {', '.join(parsing_stats.missing_columns) or 'none'}")


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--account', '-a', required=True, help='Target account id')
@click.option('--user', '-u', required=True, help='Owning user id')
@click.option('--freeform', is_flag=True, help='Treat the file as OCR or pasted statement text')
@click.option('--store', help='Path of the JSON transaction store')
@click.option('--skip-validation', is_flag=True, help='Skip the validation step')
@click.option('--skip-duplicate-check', is_flag=True, help='Skip the duplicate check')
@click.pass_context
def upload(ctx, file_path, account, user, freeform, store, skip_validation, skip_duplicate_check):
    """Parse a statement file and upload its transactions"""

    cli_instance = ctx.obj['cli']

    try:
        outcome = cli_instance.upload_file(
            file_path, account, user,
            freeform=freeform,
            store_path=store,
            skip_validation=skip_validation,
            skip_duplicate_check=skip_duplicate_check
        )
    except IngestError as e:
        click.echo(f"✗ {str(e)}")
        sys.exit(1)

    if outcome.validation and not outcome.validation.is_valid:
        click.echo(f"⚠ Validation reported {len(outcome.validation.validation_errors)} issues")
    if outcome.duplicates and outcome.duplicates.duplicate_count:
        click.echo(f"⚠ {outcome.duplicates.duplicate_count} potential duplicates uploaded")

    if not outcome.success:
        if outcome.result:
            click.echo(f"✗ Upload {outcome.result.status.value}: {outcome.result.error_count} failed")
            for error in outcome.result.errors:
                click.echo(f"    chunk {error.chunk}: {error.message}")
        else:
            click.echo(f"✗ Upload failed: {outcome.error}")
        sys.exit(1)

    result = outcome.result
    click.echo(f"✓ Upload {result.status.value}")
    click.echo(f"  Inserted: {result.inserted_count}")
    click.echo(f"  Failed: {result.error_count}")
    for error in result.errors:
        click.echo(f"    chunk {error.chunk}: {error.message}")


@cli.command('init-config')
@click.argument('output_path', default='ingest_config.json')
@click.option('--format', type=click.Choice(['json', 'yaml']), default='json', help='Configuration file format')
@click.pass_context
def init_config(ctx, output_path, format):
    """Generate configuration template file"""

    cli_instance = ctx.obj['cli']

    if format == 'yaml' and not output_path.endswith(('.yml', '.yaml')):
        output_path = output_path.replace('.json', '.yml')
    elif format == 'json' and not output_path.endswith('.json'):
        output_path = output_path.replace('.yml', '.json').replace('.yaml', '.json')

    try:
        cli_instance.config_manager.save_config_template(output_path)
        click.echo(f"✓ Configuration template generated: {output_path}")
    except OSError as e:
        click.echo(f"✗ Error generating config template: {str(e)}")
        sys.exit(1)


if __name__ == '__main__':
    cli()

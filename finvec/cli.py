"""
Command-line interface for finvec.

Provides commands to inspect backend availability and to insert or
search transaction vectors through whichever backend the configuration
selects.

Usage:
    finvec backends                                     # Availability report
    finvec insert --id t1 --vector '[1,0,0]' --metadata '{"amount": 35}'
    finvec search '[1,0,0]' --top-k 3 --category fuel   # Similarity search
    finvec --metrics search '[1,0,0]'                   # Also serve metrics on METRICS_PORT
"""

import asyncio
import json
import sys
from typing import Any

import click

from finvec.config.settings import get_settings
from finvec.observability.logging import bind_context, clear_context, setup_logging
from finvec.observability.metrics import get_metrics
from finvec.vectorstore.base import VectorRecord, VectorSearchFilter, VectorSearchOptions
from finvec.vectorstore.config import StorageMode, VectorStoreConfig
from finvec.vectorstore.exceptions import VectorStoreError
from finvec.vectorstore.factory import describe_backends, recommended_backend
from finvec.vectorstore.manager import VectorStoreManager


def _parse_json(value: str, label: str) -> Any:
    try:
        return json.loads(value)
    except ValueError as e:
        raise click.BadParameter(f"{label} must be valid JSON: {e}") from e


def _parse_vector(value: str) -> list[float]:
    vector = _parse_json(value, "vector")
    if not isinstance(vector, list) or not all(
        isinstance(v, (int, float)) and not isinstance(v, bool) for v in vector
    ):
        raise click.BadParameter("vector must be a JSON array of numbers")
    return [float(v) for v in vector]


def _build_config(mode: str | None) -> VectorStoreConfig:
    if mode:
        return VectorStoreConfig(storage_mode=StorageMode(mode))
    return VectorStoreConfig()


def _fail(error: VectorStoreError) -> None:
    click.echo(f"Error ({error.backend or 'unknown backend'}): {error.message}", err=True)
    sys.exit(1)


mode_option = click.option(
    "--mode",
    type=click.Choice([m.value for m in StorageMode]),
    default=None,
    help="Override STORAGE_MODE",
)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--metrics", is_flag=True, help="Expose Prometheus metrics on METRICS_PORT")
def main(debug: bool, metrics: bool) -> None:
    """finvec - pluggable vector storage for transaction embeddings."""
    settings = get_settings()
    if debug:
        settings = settings.model_copy(update={"debug": True})

    setup_logging(settings)
    clear_context()

    if metrics:
        get_metrics().start_server(port=settings.metrics_port)


@main.command()
@mode_option
def backends(mode: str | None) -> None:
    """Show which vector backends are available."""
    config = _build_config(mode)

    click.echo(f"Storage mode: {config.storage_mode.value}")
    click.echo("-" * 60)
    for status in describe_backends(config):
        marker = "yes" if status.available else "no"
        click.echo(f"{status.name:<10} available={marker:<4} {status.reason}")
    click.echo("-" * 60)
    click.echo(f"Recommended: {recommended_backend(config)}")


@main.command()
@click.option("--id", "record_id", default=None, help="Record id (generated if omitted)")
@click.option("--vector", "vector_json", required=True, help="Embedding as a JSON array")
@click.option("--metadata", "metadata_json", default="{}", help="Metadata as a JSON object")
@mode_option
def insert(
    record_id: str | None,
    vector_json: str,
    metadata_json: str,
    mode: str | None,
) -> None:
    """Insert (or overwrite) one vector record.

    Example:
        finvec insert --id t1 --vector '[1, 0, 0]' --metadata '{"category": "fuel", "amount": 35}'
    """
    vector = _parse_vector(vector_json)
    metadata = _parse_json(metadata_json, "metadata")
    if not isinstance(metadata, dict):
        raise click.BadParameter("metadata must be a JSON object")

    try:
        record = VectorRecord.create(vector, metadata=metadata, id=record_id)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    async def run():
        async with VectorStoreManager(_build_config(mode)) as store:
            bind_context(command="insert", backend=store.backend_name)
            return await store.insert([record])

    try:
        result = asyncio.run(run())
    except VectorStoreError as e:
        _fail(e)
        return

    click.echo(f"Inserted {record.id} into {result.backend} (mutation {result.mutation_id})")


@main.command()
@click.argument("vector_json")
@click.option("--top-k", default=5, type=click.IntRange(1, 20), help="Maximum results to return")
@click.option("--min-score", default=None, type=float, help="Minimum similarity score")
@click.option("--type", "transaction_type", default=None, help="Filter by transaction type")
@click.option("--category", default=None, help="Filter by category")
@click.option("--min-amount", default=None, type=float, help="Minimum amount")
@click.option("--max-amount", default=None, type=float, help="Maximum amount")
@mode_option
def search(
    vector_json: str,
    top_k: int,
    min_score: float | None,
    transaction_type: str | None,
    category: str | None,
    min_amount: float | None,
    max_amount: float | None,
    mode: str | None,
) -> None:
    """Search for records similar to a query vector.

    Example:
        finvec search '[0.1, 0.2, 0.3]' --top-k 3 --category fuel --max-amount 300
    """
    vector = _parse_vector(vector_json)
    try:
        search_filter = VectorSearchFilter.from_fields(
            transaction_type=transaction_type,
            category=category,
            min_amount=min_amount,
            max_amount=max_amount,
        )
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    options = VectorSearchOptions(
        top_k=top_k,
        min_score=min_score,
        filter=None if search_filter.is_empty else search_filter,
    )

    async def run():
        async with VectorStoreManager(_build_config(mode)) as store:
            bind_context(command="search", backend=store.backend_name)
            return await store.search(vector, options)

    try:
        results = asyncio.run(run())
    except VectorStoreError as e:
        _fail(e)
        return

    click.echo(f"\nBackend: {results.backend}")
    click.echo("-" * 60)

    if not results:
        click.echo("No results found.")
    for i, result in enumerate(results, 1):
        meta = result.metadata
        summary = meta.get("englishSummary") or meta.get("originalText") or ""
        click.echo(f"\n{i}. {result.id} (score: {result.score:.4f})")
        if summary:
            click.echo(f"   {summary}")
        if meta.get("category") is not None or meta.get("amount") is not None:
            click.echo(f"   Category: {meta.get('category', 'N/A')} | Amount: {meta.get('amount', 'N/A')}")

    click.echo(f"\n{'-' * 60}")
    click.echo(f"Found {len(results)} results")
    if results.skipped_rows:
        click.echo(f"Skipped {results.skipped_rows} unreadable stored rows")


if __name__ == "__main__":
    main()
